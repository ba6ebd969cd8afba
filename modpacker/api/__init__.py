"""
平台 API 客户端

Registries 把各平台客户端打包在一起，显式传入需要它们的组件。
"""

from dataclasses import dataclass, field

from modpacker.api.base import BaseClient
from modpacker.api.modrinth import ModrinthClient
from modpacker.api.curseforge import CurseforgeClient, curseforge_fingerprint
from modpacker.api.github import GithubClient
from modpacker.api.loaders import LoaderVersionClient


@dataclass
class Registries:
    """各平台客户端句柄"""

    modrinth: ModrinthClient = field(default_factory=ModrinthClient)
    curseforge: CurseforgeClient = field(default_factory=CurseforgeClient)
    github: GithubClient = field(default_factory=GithubClient)
    loaders: LoaderVersionClient = field(default_factory=LoaderVersionClient)

    @classmethod
    def from_settings(cls, settings) -> "Registries":
        user_agent = settings.user_agent
        return cls(
            modrinth=ModrinthClient(user_agent=user_agent),
            curseforge=CurseforgeClient(api_key=settings.curseforge_api_key, user_agent=user_agent),
            github=GithubClient(token=settings.github_token, user_agent=user_agent),
            loaders=LoaderVersionClient(user_agent=user_agent),
        )

    async def close(self):
        for client in (self.modrinth, self.curseforge, self.github, self.loaders):
            await client.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


__all__ = [
    "BaseClient",
    "ModrinthClient",
    "CurseforgeClient",
    "curseforge_fingerprint",
    "GithubClient",
    "LoaderVersionClient",
    "Registries",
]
