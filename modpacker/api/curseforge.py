"""
CurseForge API 客户端
"""

from typing import Any, List, Optional, Sequence

from murmurhash2 import murmurhash2

from modpacker.api.base import BaseClient
from modpacker.exceptions import ConfigError, InvalidIdError
from modpacker.models import (
    CurseforgeFile,
    CurseforgeMod,
    FingerprintMatch,
    ModLoader,
)
from modpacker.models.api import MINECRAFT_GAME_ID

CURSEFORGE_BASE_URL = "https://api.curseforge.com"

# classId=6 为模组
MOD_CLASS_ID = 6

MOD_LOADER_TYPES = {
    ModLoader.FORGE: 1,
    ModLoader.FABRIC: 4,
    ModLoader.QUILT: 5,
    ModLoader.NEOFORGE: 6,
}

_FINGERPRINT_SKIP = bytes([9, 10, 13, 32])


def curseforge_fingerprint(data: bytes) -> int:
    """
    计算 CurseForge 文件指纹

    去掉制表符、换行、回车和空格后，以种子 1 计算 murmur2。
    """
    return murmurhash2(data.translate(None, _FINGERPRINT_SKIP), 1) & 0xFFFFFFFF


class CurseforgeClient(BaseClient):
    """CurseForge API 客户端，响应数据包裹在 {"data": ...} 中"""

    registry = "curseforge"

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = CURSEFORGE_BASE_URL,
        **kwargs,
    ):
        headers = kwargs.pop("headers", None) or {}
        if api_key:
            headers["x-api-key"] = api_key
        super().__init__(headers=headers, **kwargs)
        self.api_key = api_key
        self.base_url = base_url

    def _unwrap(self, data: Any) -> Any:
        if isinstance(data, dict) and "data" in data:
            return data["data"]
        return data

    async def _request(self, method, url, params=None, json=None):
        if not self.api_key:
            raise ConfigError("未配置 CurseForge API key（环境变量 CURSEFORGE_API_KEY）")
        return await super()._request(method, url, params=params, json=json)

    async def get_mod(self, mod_id: int) -> CurseforgeMod:
        data = await self.get(f"{self.base_url}/v1/mods/{mod_id}")
        return CurseforgeMod.from_curseforge(data)

    async def get_mod_by_slug(self, slug: str) -> CurseforgeMod:
        data = await self.get(
            f"{self.base_url}/v1/mods/search",
            params={"gameId": MINECRAFT_GAME_ID, "classId": MOD_CLASS_ID, "slug": slug},
        )
        if not data:
            raise InvalidIdError(slug, "curseforge")
        return CurseforgeMod.from_curseforge(data[0])

    async def get_mods(self, mod_ids: Sequence[int]) -> List[CurseforgeMod]:
        if not mod_ids:
            return []
        data = await self.post(f"{self.base_url}/v1/mods", {"modIds": list(mod_ids)})
        return [CurseforgeMod.from_curseforge(item) for item in data]

    async def get_mod_file(self, mod_id: int, file_id: int) -> CurseforgeFile:
        data = await self.get(f"{self.base_url}/v1/mods/{mod_id}/files/{file_id}")
        return CurseforgeFile.from_curseforge(data)

    async def get_mod_files(self, mod_id: int) -> List[CurseforgeFile]:
        """项目的文件列表，按平台顺序（新文件在前）"""
        data = await self.get(f"{self.base_url}/v1/mods/{mod_id}/files")
        return [CurseforgeFile.from_curseforge(item) for item in data]

    async def get_files(self, file_ids: Sequence[int]) -> List[CurseforgeFile]:
        if not file_ids:
            return []
        data = await self.post(f"{self.base_url}/v1/mods/files", {"fileIds": list(file_ids)})
        return [CurseforgeFile.from_curseforge(item) for item in data]

    async def search(
        self,
        query: str,
        game_version: Optional[str] = None,
        loader: Optional[ModLoader] = None,
        limit: int = 20,
    ) -> List[CurseforgeMod]:
        params = {
            "gameId": MINECRAFT_GAME_ID,
            "classId": MOD_CLASS_ID,
            "searchFilter": query,
            "pageSize": limit,
        }
        if game_version:
            params["gameVersion"] = game_version
        if loader is not None:
            params["modLoaderType"] = MOD_LOADER_TYPES[loader]
        data = await self.get(f"{self.base_url}/v1/mods/search", params=params)
        return [CurseforgeMod.from_curseforge(item) for item in data]

    async def get_fingerprint_matches(self, fingerprints: Sequence[int]) -> List[FingerprintMatch]:
        if not fingerprints:
            return []
        data = await self.post(
            f"{self.base_url}/v1/fingerprints", {"fingerprints": list(fingerprints)}
        )
        return [FingerprintMatch.from_curseforge(item) for item in data.get("exactMatches", [])]
