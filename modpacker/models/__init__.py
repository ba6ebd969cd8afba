"""
modpacker 数据模型包

包含整合包、Addon 模型和 API 模型定义。
"""

from modpacker.models.enums import (
    LOADER_NAMES,
    Registry,
    ModLoader,
    ProjectType,
    Side,
    ReleaseChannel,
    ReleaseFilter,
)
from modpacker.models.addon import (
    ModrinthSource,
    CurseforgeSource,
    GithubSource,
    AddonSource,
    AddonOptions,
    Addon,
    GenericId,
)
from modpacker.models.pack import (
    LATEST,
    PackOptions,
    Versions,
    Modpack,
    Target,
)
from modpacker.models.api import (
    Candidate,
    ModrinthProject,
    ModrinthVersion,
    VersionFile,
    VersionDependency,
    SearchHit,
    CurseforgeMod,
    CurseforgeFile,
    FileDependency,
    FingerprintMatch,
    GithubRelease,
    ReleaseAsset,
)

__all__ = [
    # 枚举
    "LOADER_NAMES",
    "Registry",
    "ModLoader",
    "ProjectType",
    "Side",
    "ReleaseChannel",
    "ReleaseFilter",
    # Addon 模型
    "ModrinthSource",
    "CurseforgeSource",
    "GithubSource",
    "AddonSource",
    "AddonOptions",
    "Addon",
    "GenericId",
    # 整合包模型
    "LATEST",
    "PackOptions",
    "Versions",
    "Modpack",
    "Target",
    # API 模型
    "Candidate",
    "ModrinthProject",
    "ModrinthVersion",
    "VersionFile",
    "VersionDependency",
    "SearchHit",
    "CurseforgeMod",
    "CurseforgeFile",
    "FileDependency",
    "FingerprintMatch",
    "GithubRelease",
    "ReleaseAsset",
]
