"""
GitHub Releases API 客户端
"""

from typing import List, Optional

import aiohttp

from modpacker.api.base import BaseClient
from modpacker.exceptions import APIRateLimitError
from modpacker.models import GithubRelease

GITHUB_BASE_URL = "https://api.github.com"
API_VERSION = "2022-11-28"


class GithubClient(BaseClient):
    """GitHub API 客户端"""

    registry = "github"

    def __init__(self, token: Optional[str] = None, base_url: str = GITHUB_BASE_URL, **kwargs):
        headers = kwargs.pop("headers", None) or {}
        headers["Accept"] = "application/vnd.github+json"
        headers["X-GitHub-Api-Version"] = API_VERSION
        if token:
            headers["Authorization"] = f"Bearer {token}"
        super().__init__(headers=headers, **kwargs)
        self.base_url = base_url

    def _check_rate_limit(self, response: aiohttp.ClientResponse) -> None:
        if response.headers.get("x-ratelimit-remaining") == "0":
            raise APIRateLimitError(
                self.registry,
                response.headers.get("x-ratelimit-reset"),
                response=response,
            )
        super()._check_rate_limit(response)

    async def list_releases(self, repo: str) -> List[GithubRelease]:
        """列出仓库的 release，新的在前"""
        data = await self.get(f"{self.base_url}/repos/{repo}/releases")
        return [GithubRelease.from_github(item) for item in data]

    async def get_release_by_tag(self, repo: str, tag: str) -> GithubRelease:
        data = await self.get(f"{self.base_url}/repos/{repo}/releases/tags/{tag}")
        return GithubRelease.from_github(data)
