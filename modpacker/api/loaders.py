"""
加载器与游戏版本查询
"""

from typing import List

from modpacker.api.base import BaseClient
from modpacker.exceptions import NoLoaderSupportError
from modpacker.models import ModLoader

FABRIC_META_URL = "https://meta.fabricmc.net/v2"
QUILT_META_URL = "https://meta.quiltmc.org/v3"
FORGE_METADATA_URL = "https://files.minecraftforge.net/net/minecraftforge/forge/maven-metadata.json"
NEOFORGE_MAVEN_URL = "https://maven.neoforged.net/api/maven"
VERSION_MANIFEST_URL = "https://piston-meta.mojang.com/mc/game/version_manifest_v2.json"


class LoaderVersionClient(BaseClient):
    """查询各加载器支持的版本"""

    registry = "loader-meta"

    async def _fabric_like(self, base_url: str, mc_version: str) -> List[str]:
        games = await self.get(f"{base_url}/versions/game")
        if mc_version not in {game["version"] for game in games}:
            return []
        loaders = await self.get(f"{base_url}/versions/loader")
        return [loader["version"] for loader in loaders]

    async def _forge(self, mc_version: str) -> List[str]:
        metadata = await self.get(FORGE_METADATA_URL)
        prefix = f"{mc_version}-"
        return [
            version[len(prefix):] if version.startswith(prefix) else version
            for version in metadata.get(mc_version, [])
        ]

    async def _neoforge(self, mc_version: str) -> List[str]:
        # 1.20.1 的 NeoForge 仍以 forge 为构件名发布
        if mc_version == "1.20.1":
            url = f"{NEOFORGE_MAVEN_URL}/versions/releases/net/neoforged/forge"
            prefix = "1.20.1"
        else:
            url = f"{NEOFORGE_MAVEN_URL}/versions/releases/net/neoforged/neoforge"
            prefix = mc_version[2:] if mc_version.startswith("1.") else mc_version
        data = await self.get(url, params={"filter": prefix})
        return list(data.get("versions", []))

    async def get_loader_versions(self, loader: ModLoader, mc_version: str) -> List[str]:
        """
        获取加载器支持该游戏版本的全部版本

        Raises:
            NoLoaderSupportError: 没有可用版本
        """
        if loader is ModLoader.FABRIC:
            versions = await self._fabric_like(FABRIC_META_URL, mc_version)
        elif loader is ModLoader.QUILT:
            versions = await self._fabric_like(QUILT_META_URL, mc_version)
        elif loader is ModLoader.FORGE:
            versions = await self._forge(mc_version)
        else:
            versions = await self._neoforge(mc_version)

        if not versions:
            raise NoLoaderSupportError(loader.display_name, mc_version)
        return versions

    async def get_latest_loader_version(self, loader: ModLoader, mc_version: str) -> str:
        versions = await self.get_loader_versions(loader, mc_version)
        # Fabric/Quilt 元数据新版本在前，Forge/NeoForge 新版本在后
        if loader in (ModLoader.FABRIC, ModLoader.QUILT):
            return versions[0]
        return versions[-1]

    async def get_latest_minecraft_release(self) -> str:
        manifest = await self.get(VERSION_MANIFEST_URL)
        return manifest["latest"]["release"]
