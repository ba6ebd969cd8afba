"""
导出缓存目录

每个进程使用固定名称的临时目录保存导出时下载的文件，
成功后删除，失败时尽量删除。
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

from loguru import logger


class ExportCache:
    """导出缓存目录上下文管理器"""

    def __init__(self, base_dir: Optional[Path] = None, prefix: str = "modpacker"):
        base = Path(base_dir) if base_dir is not None else Path(tempfile.gettempdir())
        self.path = base / f"{prefix}-export-cache-{os.getpid()}"

    @property
    def overrides(self) -> Path:
        """需要合并进 overrides/ 的文件"""
        return self.path / "overrides"

    @property
    def downloads(self) -> Path:
        """只用于计算摘要的下载文件"""
        return self.path / "downloads"

    @property
    def archive(self) -> Path:
        """压缩包的暂存根目录"""
        return self.path / "archive"

    def __enter__(self) -> "ExportCache":
        if self.path.exists():
            shutil.rmtree(self.path)
        for directory in (self.overrides, self.downloads, self.archive):
            directory.mkdir(parents=True, exist_ok=True)
        logger.debug(f"[缓存] 创建 {self.path}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is None:
            shutil.rmtree(self.path)
        else:
            shutil.rmtree(self.path, ignore_errors=True)
        logger.debug(f"[缓存] 已清理 {self.path}")
