"""
索引与整合包描述的持久化

pack.toml 保存整合包描述，索引目录中每个 Addon 一个 toml 文件。
"""

import asyncio
import os
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Optional, Set

import aiofiles
import toml
from loguru import logger

from modpacker.exceptions import (
    ConfigParseError,
    ConfigValidationError,
    ModpackerError,
    UninitializedError,
)
from modpacker.models import Addon, GenericId, Modpack
from modpacker.utils import sorted_by_name

PACK_FILE = "pack.toml"


class Index:
    """
    整合包中全部 Addon 的内存副本

    保证不会有两个 Addon 拥有相同的 generic_id 或相同的名称（不区分大小写）。
    """

    def __init__(self, addons: Optional[Iterable[Addon]] = None):
        self._addons: List[Addon] = []
        for addon in addons or []:
            self.add(addon, quiet=True)

    def __iter__(self) -> Iterator[Addon]:
        return iter(self._addons)

    def __len__(self) -> int:
        return len(self._addons)

    @property
    def addons(self) -> List[Addon]:
        return list(self._addons)

    def generic_ids(self) -> Set[GenericId]:
        return {addon.generic_id() for addon in self._addons}

    def names(self) -> Set[str]:
        return {addon.name.lower() for addon in self._addons}

    def conflicts(self, addon: Addon) -> Optional[Addon]:
        """返回与 addon 冲突（相同 ID 或名称）的已有 Addon"""
        generic_id = addon.generic_id()
        name = addon.name.lower()
        for existing in self._addons:
            if existing.generic_id() == generic_id or existing.name.lower() == name:
                return existing
        return None

    def _unique_key(self, addon: Addon) -> None:
        """新 Addon 的 slug 与已有存储键冲突时，改用 '<slug>-2'、'<slug>-3' ..."""
        if addon.key is not None:
            return
        taken = {existing.slug for existing in self._addons}
        if addon.slug not in taken:
            return
        base = addon.slug
        number = 2
        while f"{base}-{number}" in taken:
            number += 1
        addon.key = f"{base}-{number}"
        logger.debug(f"[索引] {addon.name} 的存储键改为 {addon.key}")

    def add(self, addon: Addon, quiet: bool = False) -> bool:
        """
        添加 Addon

        Args:
            addon: 要添加的 Addon
            quiet: 冲突时不输出提示

        Returns:
            是否实际添加
        """
        if self.conflicts(addon) is not None:
            if not quiet:
                logger.warning(f"[跳过] {addon.name} 已在整合包中")
            return False
        self._unique_key(addon)
        self._addons.append(addon)
        return True

    def extend(self, addons: Iterable[Addon]) -> List[Addon]:
        """批量添加，返回实际添加的 Addon"""
        return [addon for addon in addons if self.add(addon)]

    def find(self, query: str) -> Optional[Addon]:
        for addon in self._addons:
            if addon.matches(query):
                return addon
        return None

    def get(self, generic_id: GenericId) -> Optional[Addon]:
        for addon in self._addons:
            if addon.generic_id() == generic_id:
                return addon
        return None

    def remove(self, addon: Addon) -> None:
        self._addons = [a for a in self._addons if a.generic_id() != addon.generic_id()]

    def sorted(self) -> List[Addon]:
        return sorted_by_name(self._addons)


def is_local_path(path: str) -> bool:
    """路径必须是相对路径且不能离开项目根目录"""
    if os.path.isabs(path):
        return False
    depth = 0
    for part in Path(path).parts:
        if part == "..":
            depth -= 1
        elif part != ".":
            depth += 1
        if depth < 0:
            return False
    return True


class IndexStore:
    """索引目录读写"""

    def __init__(self, root: Path, index_path: str = "./index", max_concurrent: int = 50):
        if not is_local_path(index_path):
            raise ConfigValidationError(
                "索引路径无效，必须是相对路径且不能离开项目根目录，例如 './index'",
                context={"index_path": index_path},
            )
        self.path = Path(root) / index_path
        self.max_concurrent = max_concurrent

    @staticmethod
    def filename(addon: Addon) -> str:
        return f"{addon.slug}.toml"

    async def _read_one(self, path: Path) -> Addon:
        async with aiofiles.open(path, "r", encoding="utf-8") as f:
            content = await f.read()
        try:
            return Addon.from_dict(toml.loads(content), key=path.stem)
        except (toml.TomlDecodeError, KeyError, ValueError) as e:
            raise ConfigParseError(
                f"无法解析索引文件 {path.name}: {e}", context={"path": str(path)}
            ) from e

    async def load(self) -> Index:
        """读取全部 Addon"""
        if not self.path.is_dir():
            return Index()

        paths = sorted(p for p in self.path.iterdir() if p.is_file() and p.suffix == ".toml")
        addons = await asyncio.gather(*(self._read_one(p) for p in paths))
        logger.debug(f"[索引] 读取 {len(addons)} 个 Addon")
        return Index(addons)

    async def write(self, addons: Iterable[Addon]) -> None:
        """只写入给定的 Addon，其余文件保持不变"""
        self.path.mkdir(parents=True, exist_ok=True)
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async def _write(addon: Addon):
            async with semaphore:
                async with aiofiles.open(
                    self.path / self.filename(addon), "w", encoding="utf-8"
                ) as f:
                    await f.write(toml.dumps(addon.to_dict()))

        await asyncio.gather(*(_write(addon) for addon in addons))

    async def remove(self, addons: Iterable[Addon]) -> None:
        for addon in addons:
            path = self.path / self.filename(addon)
            if not path.is_file():
                raise ModpackerError(
                    f"无法从索引中移除 {addon.name}：找不到文件 {path.name}",
                    context={"path": str(path)},
                )
            path.unlink()


class ModpackStore:
    """项目根目录下 pack.toml 的读写"""

    def __init__(self, root: Optional[Path] = None):
        self.root = Path(root) if root is not None else Path.cwd()

    @property
    def path(self) -> Path:
        return self.root / PACK_FILE

    def exists(self) -> bool:
        return self.path.is_file()

    def read(self) -> Modpack:
        if not self.exists():
            raise UninitializedError()
        try:
            data = toml.load(self.path)
            return Modpack.from_dict(data)
        except toml.TomlDecodeError as e:
            raise ConfigParseError(f"pack.toml 格式错误: {e}") from e
        except (KeyError, ValueError) as e:
            raise ConfigValidationError(f"pack.toml 内容无效: {e}") from e

    def write(self, modpack: Modpack) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
        with open(self.path, "w", encoding="utf-8") as f:
            toml.dump(modpack.to_dict(), f)

    def index_store(self, modpack: Modpack) -> IndexStore:
        return IndexStore(self.root, modpack.index_path)


def group_by_registry(addons: Iterable[Addon]) -> Dict[str, List[Addon]]:
    """按来源平台分组"""
    groups: Dict[str, List[Addon]] = {}
    for addon in addons:
        groups.setdefault(addon.registry.value, []).append(addon)
    return groups
