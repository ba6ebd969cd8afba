"""
压缩包构建与解压

在暂存目录中组装文件，再用 shutil.make_archive 打包。
"""

import json
import shutil
import zipfile
from pathlib import Path, PurePosixPath
from typing import Any, List, Optional

import aiofiles

from modpacker.exceptions import BadImportError, PackagerError

OVERRIDES = "overrides"


class ArchiveBuilder:
    """压缩包构建器"""

    def __init__(self, staging_dir: Path):
        self.staging_dir = Path(staging_dir)
        self.staging_dir.mkdir(parents=True, exist_ok=True)

    async def write_json(self, name: str, data: Any) -> None:
        async with aiofiles.open(self.staging_dir / name, "w", encoding="utf-8") as f:
            await f.write(json.dumps(data, indent=4, ensure_ascii=False))

    async def write_text(self, name: str, text: str) -> None:
        async with aiofiles.open(self.staging_dir / name, "w", encoding="utf-8") as f:
            await f.write(text)

    def add_tree(self, source_dir: Optional[Path], dest: str = OVERRIDES) -> None:
        """把目录内容合并到暂存目录的 dest 下"""
        if source_dir is None or not Path(source_dir).is_dir():
            return
        shutil.copytree(source_dir, self.staging_dir / dest, dirs_exist_ok=True)

    def build(self, output_path: Path) -> Path:
        """
        打包为 output_path

        Args:
            output_path: 输出文件路径（含扩展名，如 .mrpack/.zip）

        Returns:
            生成的文件路径
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        base_name = output_path.with_suffix("")
        try:
            zip_path = Path(shutil.make_archive(str(base_name), "zip", self.staging_dir))
            if zip_path != output_path:
                if output_path.exists():
                    output_path.unlink()
                shutil.move(str(zip_path), str(output_path))
        except OSError as e:
            raise PackagerError(
                f"构建压缩包失败: {e}", context={"output_path": str(output_path)}
            ) from e
        return output_path


def open_archive(path: Path, suffix: str) -> zipfile.ZipFile:
    """打开要导入的压缩包"""
    path = Path(path)
    if not path.is_file() or path.suffix.lower() != suffix:
        raise BadImportError(f"{path} 不是 {suffix} 文件", context={"path": str(path)})
    try:
        return zipfile.ZipFile(path)
    except zipfile.BadZipFile as e:
        raise BadImportError(f"无法读取压缩包 {path}: {e}") from e


def read_json_member(archive: zipfile.ZipFile, name: str) -> Any:
    try:
        return json.loads(archive.read(name).decode("utf-8"))
    except KeyError:
        raise BadImportError(f"压缩包中缺少 {name}") from None
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BadImportError(f"{name} 格式错误: {e}") from e


def extract_overrides(archive: zipfile.ZipFile, root: Path) -> List[str]:
    """
    把 overrides/ 子树解压到 root/overrides

    Returns:
        解压出的文件相对 overrides/ 的路径
    """
    extracted = []
    target = Path(root) / OVERRIDES
    for member in archive.infolist():
        path = PurePosixPath(member.filename)
        if not path.parts or path.parts[0] != OVERRIDES or member.is_dir():
            continue
        relative = PurePosixPath(*path.parts[1:])
        if not relative.parts or ".." in relative.parts or relative.is_absolute():
            raise BadImportError(f"压缩包中包含非法路径: {member.filename}")
        dest = target.joinpath(*relative.parts)
        dest.parent.mkdir(parents=True, exist_ok=True)
        with archive.open(member) as src, open(dest, "wb") as dst:
            shutil.copyfileobj(src, dst)
        extracted.append(relative.as_posix())
    return extracted


def remove_if_empty(directory: Path) -> None:
    """目录为空时删除"""
    if directory.is_dir() and not any(directory.iterdir()):
        directory.rmdir()
