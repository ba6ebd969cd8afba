"""
枚举类型

加载器、项目类型、安装端、发布通道和来源平台。
"""

from enum import Enum
from typing import Optional, Tuple


class Registry(Enum):
    """模组来源平台"""

    MODRINTH = "modrinth"
    CURSEFORGE = "curseforge"
    GITHUB = "github"


class ModLoader(Enum):
    """模组加载器"""

    FABRIC = "fabric"
    QUILT = "quilt"
    FORGE = "forge"
    NEOFORGE = "neoforge"

    @property
    def display_name(self) -> str:
        """CurseForge 文件 gameVersions 中使用的名称"""
        return _LOADER_DISPLAY_NAMES[self]

    @property
    def mrpack_key(self) -> str:
        """modrinth.index.json dependencies 中的键"""
        return _LOADER_MRPACK_KEYS[self]

    @classmethod
    def from_mrpack_key(cls, key: str) -> Optional["ModLoader"]:
        for loader, mrpack_key in _LOADER_MRPACK_KEYS.items():
            if mrpack_key == key:
                return loader
        return None

    @classmethod
    def parse(cls, value: str) -> "ModLoader":
        """不区分大小写地解析加载器名称"""
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"未知的模组加载器: {value}") from None


_LOADER_DISPLAY_NAMES = {
    ModLoader.FABRIC: "Fabric",
    ModLoader.QUILT: "Quilt",
    ModLoader.FORGE: "Forge",
    ModLoader.NEOFORGE: "NeoForge",
}

_LOADER_MRPACK_KEYS = {
    ModLoader.FABRIC: "fabric-loader",
    ModLoader.QUILT: "quilt-loader",
    ModLoader.FORGE: "forge",
    ModLoader.NEOFORGE: "neoforge",
}

LOADER_NAMES = frozenset(loader.value for loader in ModLoader)


class ProjectType(Enum):
    """项目类型"""

    MOD = "mod"
    SHADER = "shader"
    DATAPACK = "datapack"
    RESOURCEPACK = "resourcepack"
    PLUGIN = "plugin"
    MODPACK = "modpack"
    UNKNOWN = "unknown"

    @classmethod
    def from_modrinth(cls, value: str) -> "ProjectType":
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN

    @classmethod
    def from_curseforge_class(cls, class_id: Optional[int]) -> Optional["ProjectType"]:
        """CurseForge classId 到项目类型，不支持的类别返回 None"""
        return _CURSEFORGE_CLASSES.get(class_id)

    @property
    def supported(self) -> bool:
        return self not in (ProjectType.PLUGIN, ProjectType.MODPACK)

    @property
    def folder(self) -> str:
        """实例目录下的默认文件夹"""
        return _PROJECT_FOLDERS.get(self, UNKNOWN_FOLDER)

    @classmethod
    def from_folder(cls, folder: str) -> "ProjectType":
        for project_type, name in _PROJECT_FOLDERS.items():
            if name == folder:
                return project_type
        return cls.UNKNOWN


UNKNOWN_FOLDER = "unknown"

_CURSEFORGE_CLASSES = {
    6: ProjectType.MOD,
    6552: ProjectType.SHADER,
    6945: ProjectType.DATAPACK,
    12: ProjectType.RESOURCEPACK,
}

_PROJECT_FOLDERS = {
    ProjectType.MOD: "mods",
    ProjectType.SHADER: "shaderpacks",
    ProjectType.DATAPACK: "datapacks",
    ProjectType.RESOURCEPACK: "resourcepacks",
}


class Side(Enum):
    """安装端"""

    BOTH = "both"
    CLIENT = "client"
    SERVER = "server"

    @classmethod
    def from_support(cls, client_side: str, server_side: str) -> "Side":
        """由 Modrinth 的 client_side/server_side 推断安装端"""
        if server_side == "unsupported" and client_side != "unsupported":
            return cls.CLIENT
        if client_side == "unsupported" and server_side != "unsupported":
            return cls.SERVER
        return cls.BOTH

    def env(self) -> Tuple[str, str]:
        """mrpack env 字段 (client, server)"""
        if self is Side.CLIENT:
            return "required", "unsupported"
        if self is Side.SERVER:
            return "unsupported", "required"
        return "required", "required"


class ReleaseChannel(Enum):
    """发布通道，越靠前越稳定"""

    RELEASE = "release"
    BETA = "beta"
    ALPHA = "alpha"

    @property
    def rank(self) -> int:
        return list(ReleaseChannel).index(self)

    @classmethod
    def parse(cls, value: str) -> "ReleaseChannel":
        value = value.lower()
        if value == "prerelease":
            return cls.BETA
        return cls(value)

    @classmethod
    def from_curseforge(cls, release_type: int) -> "ReleaseChannel":
        return {1: cls.RELEASE, 2: cls.BETA, 3: cls.ALPHA}.get(release_type, cls.RELEASE)


class ReleaseFilter(Enum):
    """GitHub release 过滤方式"""

    TAG = "tag"
    TITLE = "title"
    NONE = "none"
