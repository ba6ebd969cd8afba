"""
Modrinth API 客户端
"""

import json
from typing import Dict, List, Optional, Sequence

import aiohttp

from modpacker.api.base import BaseClient
from modpacker.exceptions import APIRateLimitError, InvalidIdError
from modpacker.models import ModrinthProject, ModrinthVersion, SearchHit
from modpacker.models.addon import MODRINTH_ID_PATTERN

MODRINTH_BASE_URL = "https://api.modrinth.com/v2"


def check_id(idx: str) -> None:
    """在发出请求前检查 ID/slug 格式"""
    if not MODRINTH_ID_PATTERN.match(idx):
        raise InvalidIdError(idx, "modrinth")


class ModrinthClient(BaseClient):
    """Modrinth API 客户端"""

    registry = "modrinth"

    def __init__(self, base_url: str = MODRINTH_BASE_URL, **kwargs):
        super().__init__(**kwargs)
        self.base_url = base_url

    def _check_rate_limit(self, response: aiohttp.ClientResponse) -> None:
        if response.status == 429:
            raise APIRateLimitError(
                self.registry,
                response.headers.get("X-Ratelimit-Reset"),
                response=response,
            )

    async def get_project(self, idx: str) -> ModrinthProject:
        check_id(idx)
        data = await self.get(f"{self.base_url}/project/{idx}")
        return ModrinthProject.from_modrinth(data)

    async def get_projects(self, ids: Sequence[str]) -> List[ModrinthProject]:
        if not ids:
            return []
        data = await self.get(f"{self.base_url}/projects", params={"ids": json.dumps(list(ids))})
        return [ModrinthProject.from_modrinth(item) for item in data]

    async def get_project_versions(self, idx: str) -> List[ModrinthVersion]:
        """项目的全部版本，按平台顺序（新版本在前）"""
        check_id(idx)
        data = await self.get(f"{self.base_url}/project/{idx}/version")
        return [ModrinthVersion.from_modrinth(item) for item in data]

    async def get_version(self, idx: str) -> ModrinthVersion:
        check_id(idx)
        data = await self.get(f"{self.base_url}/version/{idx}")
        return ModrinthVersion.from_modrinth(data)

    async def get_versions(self, ids: Sequence[str]) -> List[ModrinthVersion]:
        if not ids:
            return []
        data = await self.get(f"{self.base_url}/versions", params={"ids": json.dumps(list(ids))})
        return [ModrinthVersion.from_modrinth(item) for item in data]

    async def versions_from_hashes(self, hashes: Sequence[str]) -> Dict[str, ModrinthVersion]:
        """按 sha1 批量查询版本，返回 {hash: 版本}"""
        if not hashes:
            return {}
        data = await self.post(
            f"{self.base_url}/version_files",
            {"hashes": list(hashes), "algorithm": "sha1"},
        )
        return {key: ModrinthVersion.from_modrinth(value) for key, value in data.items()}

    async def search(
        self,
        query: str,
        game_version: Optional[str] = None,
        project_type: Optional[str] = None,
        limit: int = 20,
    ) -> List[SearchHit]:
        facets = []
        if game_version:
            facets.append([f"versions:{game_version}"])
        if project_type:
            facets.append([f"project_type:{project_type}"])
        params = {"query": query, "limit": str(limit)}
        if facets:
            params["facets"] = json.dumps(facets)
        data = await self.get(f"{self.base_url}/search", params=params)
        return [SearchHit.from_modrinth(hit) for hit in data.get("hits", [])]
