"""
Addon 数据模型

整合包中的单个可安装单元（模组、光影、资源包、数据包）以及它的来源。
"""

import re
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, Optional, Tuple, Union

from modpacker.models.enums import (
    ModLoader,
    ProjectType,
    Registry,
    ReleaseChannel,
    ReleaseFilter,
    Side,
)
from modpacker.utils import slugify

GenericId = Tuple[str, str]

MODRINTH_ID_PATTERN = re.compile(r"^[\w!@$()`.+,\"\-']{3,64}$")


@dataclass(frozen=True)
class ModrinthSource:
    """Modrinth 来源：项目 ID 与版本 ID"""

    registry: ClassVar[Registry] = Registry.MODRINTH

    id: str
    version: str

    @property
    def native_id(self) -> str:
        return self.id

    def generic_id(self) -> GenericId:
        return (self.registry.value, self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.registry.value, "id": self.id, "version": self.version}

    @classmethod
    def from_dict(cls, data: dict) -> "ModrinthSource":
        return cls(id=str(data["id"]), version=str(data["version"]))


@dataclass(frozen=True)
class CurseforgeSource:
    """CurseForge 来源：项目 ID 与文件 ID"""

    registry: ClassVar[Registry] = Registry.CURSEFORGE

    id: int
    version: int

    @property
    def native_id(self) -> str:
        return str(self.id)

    def generic_id(self) -> GenericId:
        return (self.registry.value, str(self.id))

    def to_dict(self) -> Dict[str, Any]:
        return {"source": self.registry.value, "id": self.id, "version": self.version}

    @classmethod
    def from_dict(cls, data: dict) -> "CurseforgeSource":
        return cls(id=int(data["id"]), version=int(data["version"]))


@dataclass(frozen=True)
class GithubSource:
    """
    GitHub release 来源

    Attributes:
        repo: 'owner/repo'
        tag: release 标签
        asset_index: 使用的 release 附件序号
        filter_by: 更新时按标签还是标题匹配 filter
        filter: 匹配新 release 的正则，可包含 {mc_version} 占位符
    """

    registry: ClassVar[Registry] = Registry.GITHUB

    repo: str
    tag: str
    asset_index: int = 0
    filter_by: ReleaseFilter = ReleaseFilter.NONE
    filter: Optional[str] = None

    @property
    def native_id(self) -> str:
        return self.repo

    def generic_id(self) -> GenericId:
        return (self.registry.value, self.repo.lower())

    def release_pattern(self, mc_version: str) -> Optional[re.Pattern]:
        """返回替换了 {mc_version} 的 release 过滤正则"""
        if self.filter_by is ReleaseFilter.NONE or not self.filter:
            return None
        return re.compile(self.filter.replace("{mc_version}", re.escape(mc_version)))

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "source": self.registry.value,
            "repo": self.repo,
            "tag": self.tag,
            "asset_index": self.asset_index,
        }
        if self.filter_by is not ReleaseFilter.NONE:
            data["filter_by"] = self.filter_by.value
        if self.filter:
            data["filter"] = self.filter
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "GithubSource":
        return cls(
            repo=data["repo"],
            tag=data["tag"],
            asset_index=int(data.get("asset_index", 0)),
            filter_by=ReleaseFilter(data.get("filter_by", "none")),
            filter=data.get("filter"),
        )


AddonSource = Union[ModrinthSource, CurseforgeSource, GithubSource]

_SOURCE_TYPES = {
    Registry.MODRINTH.value: ModrinthSource,
    Registry.CURSEFORGE.value: CurseforgeSource,
    Registry.GITHUB.value: GithubSource,
}


def source_from_dict(data: dict) -> AddonSource:
    """按 source 标签构造来源"""
    tag = data.get("source")
    source_type = _SOURCE_TYPES.get(tag)
    if source_type is None:
        raise ValueError(f"未知的来源类型: {tag}")
    return source_type.from_dict(data)


@dataclass
class AddonOptions:
    """单个 Addon 的选项"""

    pinned: bool = False
    mod_loader: Optional[ModLoader] = None
    game_version: Optional[str] = None
    release_channel: Optional[ReleaseChannel] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.pinned:
            data["pinned"] = True
        if self.mod_loader is not None:
            data["mod_loader"] = self.mod_loader.value
        if self.game_version is not None:
            data["game_version"] = self.game_version
        if self.release_channel is not None:
            data["release_channel"] = self.release_channel.value
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "AddonOptions":
        data = data or {}
        loader = data.get("mod_loader")
        channel = data.get("release_channel")
        return cls(
            pinned=bool(data.get("pinned", False)),
            mod_loader=ModLoader.parse(loader) if loader else None,
            game_version=data.get("game_version"),
            release_channel=ReleaseChannel.parse(channel) if channel else None,
        )


@dataclass
class Addon:
    """
    整合包中的一个 Addon

    generic_id (平台, 原生 ID) 是去重的主键，名称（不区分大小写）是次键。
    """

    name: str
    project_type: ProjectType
    side: Side
    source: AddonSource
    options: AddonOptions = field(default_factory=AddonOptions)
    key: Optional[str] = None

    @property
    def slug(self) -> str:
        """索引目录中的存储键"""
        return self.key or slugify(self.name)

    @property
    def registry(self) -> Registry:
        return self.source.registry

    @property
    def version_label(self) -> str:
        """锁定的版本（GitHub 为 release 标签）"""
        if isinstance(self.source, GithubSource):
            return self.source.tag
        return str(self.source.version)

    def generic_id(self) -> GenericId:
        return self.source.generic_id()

    def matches(self, query: str) -> bool:
        """
        判断查询字符串是否指向此 Addon

        名称不区分大小写，也接受原生 ID 或 '平台:ID'。
        """
        query = query.strip()
        if query.lower() == self.name.lower():
            return True
        registry, native_id = self.generic_id()
        if query == self.source.native_id or query.lower() == native_id:
            return True
        return query.lower() == f"{registry}:{native_id}".lower()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "type": self.project_type.value,
            "side": self.side.value,
            "source": self.source.to_dict(),
        }
        options = self.options.to_dict()
        if options:
            data["options"] = options
        return data

    @classmethod
    def from_dict(cls, data: dict, key: Optional[str] = None) -> "Addon":
        return cls(
            name=data["name"],
            project_type=ProjectType.from_modrinth(data.get("type", "mod")),
            side=Side(data.get("side", "both")),
            source=source_from_dict(data["source"]),
            options=AddonOptions.from_dict(data.get("options")),
            key=key,
        )
