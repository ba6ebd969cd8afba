"""
API 数据模型

定义各平台返回的项目、版本、文件数据类，以及兼容性筛选使用的 Candidate。
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, FrozenSet, List, Optional

from modpacker.models.enums import (
    LOADER_NAMES,
    ProjectType,
    ReleaseChannel,
    Side,
)
from modpacker.utils import EPOCH, parse_timestamp


@dataclass
class Candidate:
    """
    一个待筛选的版本/文件记录，不会被持久化

    Attributes:
        id: 版本 ID（CurseForge 为文件 ID 的字符串形式）
        game_versions: 支持的游戏版本
        loaders: 支持的加载器（小写），只对模组有意义
        available: 是否可用
        published: 发布时间
        channel: 发布通道
        raw: 平台原始数据对象
    """

    id: str
    game_versions: FrozenSet[str]
    loaders: FrozenSet[str]
    available: bool = True
    published: datetime = EPOCH
    channel: ReleaseChannel = ReleaseChannel.RELEASE
    raw: Any = None


# ---------------------------------------------------------------- Modrinth


@dataclass
class ModrinthProject:
    """Modrinth 项目信息"""

    id: str
    slug: str
    title: str
    description: str
    project_type: ProjectType
    client_side: str = "required"
    server_side: str = "required"

    @property
    def side(self) -> Side:
        return Side.from_support(self.client_side, self.server_side)

    @classmethod
    def from_modrinth(cls, data: dict) -> "ModrinthProject":
        return cls(
            id=data.get("id", ""),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            description=data.get("description", ""),
            project_type=ProjectType.from_modrinth(data.get("project_type", "mod")),
            client_side=data.get("client_side", "required"),
            server_side=data.get("server_side", "required"),
        )


@dataclass
class VersionFile:
    """Modrinth 版本中的文件"""

    url: str
    filename: str
    size: int
    primary: bool = False
    hashes: Dict[str, str] = field(default_factory=dict)

    @property
    def sha1(self) -> Optional[str]:
        return self.hashes.get("sha1")


@dataclass
class VersionDependency:
    """Modrinth 版本依赖"""

    project_id: Optional[str]
    version_id: Optional[str]
    dependency_type: str  # required, optional, incompatible, embedded
    file_name: Optional[str] = None

    @property
    def required(self) -> bool:
        return self.dependency_type == "required"


@dataclass
class ModrinthVersion:
    """Modrinth 版本信息"""

    id: str
    project_id: str
    name: str
    version_number: str
    game_versions: List[str]
    loaders: List[str]
    files: List[VersionFile]
    dependencies: List[VersionDependency]
    version_type: str = "release"
    date_published: datetime = EPOCH
    status: Optional[str] = None

    def primary_file(self) -> Optional[VersionFile]:
        """主文件，没有标记时取第一个"""
        for file in self.files:
            if file.primary:
                return file
        return self.files[0] if self.files else None

    def to_candidate(self) -> Candidate:
        return Candidate(
            id=self.id,
            game_versions=frozenset(self.game_versions),
            loaders=frozenset(loader.lower() for loader in self.loaders),
            available=self.status not in ("draft", "archived"),
            published=self.date_published,
            channel=ReleaseChannel.parse(self.version_type or "release"),
            raw=self,
        )

    @classmethod
    def from_modrinth(cls, data: dict) -> "ModrinthVersion":
        files = [
            VersionFile(
                url=file["url"],
                filename=file["filename"],
                size=file.get("size", 0),
                primary=file.get("primary", False),
                hashes=file.get("hashes") or {},
            )
            for file in data.get("files", [])
        ]

        dependencies = [
            VersionDependency(
                project_id=dep.get("project_id"),
                version_id=dep.get("version_id"),
                dependency_type=dep.get("dependency_type", "required"),
                file_name=dep.get("file_name"),
            )
            for dep in data.get("dependencies", [])
        ]

        return cls(
            id=data.get("id", ""),
            project_id=data.get("project_id", ""),
            name=data.get("name", ""),
            version_number=data.get("version_number", ""),
            game_versions=data.get("game_versions", []),
            loaders=data.get("loaders", []),
            files=files,
            dependencies=dependencies,
            version_type=data.get("version_type", "release"),
            date_published=parse_timestamp(data.get("date_published")),
            status=data.get("status"),
        )


@dataclass
class SearchHit:
    """Modrinth 搜索结果"""

    project_id: str
    title: str
    slug: str = ""

    @classmethod
    def from_modrinth(cls, data: dict) -> "SearchHit":
        return cls(
            project_id=data["project_id"],
            title=data.get("title", ""),
            slug=data.get("slug", ""),
        )


# -------------------------------------------------------------- CurseForge

CF_RELATION_REQUIRED = 3
CF_HASH_SHA1 = 1
CF_HASH_MD5 = 2
MINECRAFT_GAME_ID = 432


@dataclass
class CurseforgeMod:
    """CurseForge 项目信息"""

    id: int
    game_id: int
    name: str
    slug: str = ""
    class_id: Optional[int] = None
    website_url: Optional[str] = None
    allow_mod_distribution: Optional[bool] = None

    @property
    def project_type(self) -> Optional[ProjectType]:
        return ProjectType.from_curseforge_class(self.class_id)

    @classmethod
    def from_curseforge(cls, data: dict) -> "CurseforgeMod":
        return cls(
            id=int(data["id"]),
            game_id=int(data.get("gameId", MINECRAFT_GAME_ID)),
            name=data.get("name", ""),
            slug=data.get("slug", ""),
            class_id=data.get("classId"),
            website_url=(data.get("links") or {}).get("websiteUrl"),
            allow_mod_distribution=data.get("allowModDistribution"),
        )


@dataclass
class FileDependency:
    """CurseForge 文件依赖"""

    mod_id: int
    relation_type: int

    @property
    def required(self) -> bool:
        return self.relation_type == CF_RELATION_REQUIRED


@dataclass
class CurseforgeFile:
    """CurseForge 文件信息"""

    id: int
    mod_id: int
    file_name: str
    is_available: bool
    download_url: Optional[str]
    game_versions: List[str]
    dependencies: List[FileDependency]
    display_name: str = ""
    file_date: datetime = EPOCH
    release_type: int = 1
    file_length: int = 0
    hashes: Dict[int, str] = field(default_factory=dict)
    fingerprint: Optional[int] = None

    @property
    def sha1(self) -> Optional[str]:
        return self.hashes.get(CF_HASH_SHA1)

    def to_candidate(self) -> Candidate:
        # gameVersions 同时包含游戏版本和加载器名称
        loaders = frozenset(
            version.lower() for version in self.game_versions if version.lower() in LOADER_NAMES
        )
        return Candidate(
            id=str(self.id),
            game_versions=frozenset(self.game_versions),
            loaders=loaders,
            available=self.is_available,
            published=self.file_date,
            channel=ReleaseChannel.from_curseforge(self.release_type),
            raw=self,
        )

    @classmethod
    def from_curseforge(cls, data: dict) -> "CurseforgeFile":
        return cls(
            id=int(data["id"]),
            mod_id=int(data["modId"]),
            file_name=data.get("fileName", ""),
            is_available=data.get("isAvailable", True),
            download_url=data.get("downloadUrl"),
            game_versions=data.get("gameVersions", []),
            dependencies=[
                FileDependency(mod_id=int(dep["modId"]), relation_type=int(dep["relationType"]))
                for dep in data.get("dependencies", [])
            ],
            display_name=data.get("displayName", ""),
            file_date=parse_timestamp(data.get("fileDate")),
            release_type=int(data.get("releaseType", 1)),
            file_length=int(data.get("fileLength", 0)),
            hashes={int(item["algo"]): item["value"] for item in data.get("hashes", [])},
            fingerprint=data.get("fileFingerprint"),
        )


@dataclass
class FingerprintMatch:
    """指纹查询的精确匹配"""

    id: int
    file: CurseforgeFile

    @classmethod
    def from_curseforge(cls, data: dict) -> "FingerprintMatch":
        return cls(id=int(data["id"]), file=CurseforgeFile.from_curseforge(data["file"]))


# ------------------------------------------------------------------ GitHub


@dataclass
class ReleaseAsset:
    """GitHub release 附件"""

    name: str
    browser_download_url: str
    size: int = 0


@dataclass
class GithubRelease:
    """GitHub release"""

    name: str
    tag_name: str
    prerelease: bool
    assets: List[ReleaseAsset]
    published_at: datetime = EPOCH

    @property
    def title(self) -> str:
        return self.name or self.tag_name

    @classmethod
    def from_github(cls, data: dict) -> "GithubRelease":
        return cls(
            name=data.get("name") or "",
            tag_name=data["tag_name"],
            prerelease=data.get("prerelease", False),
            assets=[
                ReleaseAsset(
                    name=asset["name"],
                    browser_download_url=asset["browser_download_url"],
                    size=asset.get("size", 0),
                )
                for asset in data.get("assets", [])
            ],
            published_at=parse_timestamp(data.get("published_at")),
        )
