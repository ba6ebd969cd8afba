"""
modpacker 打包层

三种整合包格式的导入导出：mrpack、CurseForge zip 和 packwiz 目录。
"""

from modpacker.packager.archive import ArchiveBuilder
from modpacker.packager.base import ImportResult, PackCodec
from modpacker.packager.cache import ExportCache
from modpacker.packager.curseforge import CurseforgePackCodec
from modpacker.packager.mrpack import MrpackCodec
from modpacker.packager.packwiz import PackwizCodec

__all__ = [
    "ArchiveBuilder",
    "ExportCache",
    "ImportResult",
    "PackCodec",
    "MrpackCodec",
    "CurseforgePackCodec",
    "PackwizCodec",
]
