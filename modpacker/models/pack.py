"""
整合包数据模型

pack.toml 中的整合包描述以及用于兼容性判断的目标平台。
"""

from dataclasses import dataclass, field, replace
from pathlib import PurePosixPath
from typing import Any, Dict, FrozenSet, List, Optional

from modpacker.models.addon import AddonOptions
from modpacker.models.enums import ModLoader, ProjectType

LATEST = "latest"


@dataclass
class PackOptions:
    """
    整合包选项

    Attributes:
        acceptable_versions: 备用的 Minecraft 版本
        acceptable_loaders: 备用的加载器（如 Quilt 包也接受 Fabric 文件）
        overrides_path: 导出时原样打包的 overrides 目录
        *_output: 各项目类型在实例中的输出目录
    """

    acceptable_versions: List[str] = field(default_factory=list)
    acceptable_loaders: List[ModLoader] = field(default_factory=list)
    overrides_path: Optional[str] = None
    mods_output: Optional[str] = None
    resourcepacks_output: Optional[str] = None
    shaders_output: Optional[str] = None
    datapacks_output: Optional[str] = None

    def export_folder(self, project_type: ProjectType) -> str:
        """获取项目类型在导出包中的文件夹"""
        custom = {
            ProjectType.MOD: self.mods_output,
            ProjectType.RESOURCEPACK: self.resourcepacks_output,
            ProjectType.SHADER: self.shaders_output,
            ProjectType.DATAPACK: self.datapacks_output,
        }.get(project_type)
        if custom:
            return PurePosixPath(custom).as_posix()
        return project_type.folder

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.acceptable_versions:
            data["acceptable_versions"] = list(self.acceptable_versions)
        if self.acceptable_loaders:
            data["acceptable_loaders"] = [loader.value for loader in self.acceptable_loaders]
        for key in (
            "overrides_path",
            "mods_output",
            "resourcepacks_output",
            "shaders_output",
            "datapacks_output",
        ):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PackOptions":
        data = data or {}
        return cls(
            acceptable_versions=list(data.get("acceptable_versions") or []),
            acceptable_loaders=[
                ModLoader.parse(loader) for loader in data.get("acceptable_loaders") or []
            ],
            overrides_path=data.get("overrides_path"),
            mods_output=data.get("mods_output"),
            resourcepacks_output=data.get("resourcepacks_output"),
            shaders_output=data.get("shaders_output"),
            datapacks_output=data.get("datapacks_output"),
        )


@dataclass
class Versions:
    """游戏与加载器版本"""

    minecraft: str
    loader: ModLoader
    loader_version: str = LATEST

    def to_dict(self) -> Dict[str, Any]:
        return {
            "minecraft": self.minecraft,
            "loader": self.loader.value,
            "loader_version": self.loader_version,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Versions":
        return cls(
            minecraft=str(data["minecraft"]),
            loader=ModLoader.parse(data["loader"]),
            loader_version=str(data.get("loader_version", LATEST)),
        )


@dataclass
class Modpack:
    """pack.toml 中的整合包描述"""

    name: str
    version: str
    versions: Versions
    authors: List[str] = field(default_factory=list)
    description: Optional[str] = None
    index_path: str = "./index"
    options: PackOptions = field(default_factory=PackOptions)

    @property
    def target(self) -> "Target":
        return Target(
            minecraft_version=self.versions.minecraft,
            loader=self.versions.loader,
            acceptable_versions=frozenset(self.options.acceptable_versions),
            acceptable_loaders=frozenset(self.options.acceptable_loaders),
        )

    @property
    def archive_stem(self) -> str:
        """导出文件名 '<name>-<version>'"""
        return f"{self.name}-{self.version}"

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "name": self.name,
            "version": self.version,
            "authors": list(self.authors),
        }
        if self.description is not None:
            data["description"] = self.description
        data["index_path"] = self.index_path
        data["options"] = self.options.to_dict()
        data["versions"] = self.versions.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "Modpack":
        return cls(
            name=data["name"],
            version=str(data["version"]),
            versions=Versions.from_dict(data["versions"]),
            authors=list(data.get("authors") or []),
            description=data.get("description"),
            index_path=data.get("index_path", "./index"),
            options=PackOptions.from_dict(data.get("options")),
        )


@dataclass(frozen=True)
class Target:
    """
    兼容性判断使用的目标平台

    minecraft_version 与 loader 为主目标，acceptable_* 为备用集合。
    """

    minecraft_version: str
    loader: ModLoader
    acceptable_versions: FrozenSet[str] = frozenset()
    acceptable_loaders: FrozenSet[ModLoader] = frozenset()

    @property
    def game_versions(self) -> FrozenSet[str]:
        return self.acceptable_versions | {self.minecraft_version}

    @property
    def loaders(self) -> FrozenSet[ModLoader]:
        return self.acceptable_loaders | {self.loader}

    @property
    def loader_names(self) -> FrozenSet[str]:
        return frozenset(loader.value for loader in self.loaders)

    def for_addon(self, options: Optional[AddonOptions]) -> "Target":
        """应用单个 Addon 的加载器/游戏版本覆盖"""
        if options is None:
            return self
        target = self
        if options.mod_loader is not None:
            target = replace(target, loader=options.mod_loader)
        if options.game_version:
            target = replace(target, minecraft_version=options.game_version)
        return target

    def with_minecraft(self, minecraft_version: str) -> "Target":
        return replace(self, minecraft_version=minecraft_version)
