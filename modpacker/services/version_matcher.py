"""
版本匹配服务

从平台返回的候选版本中筛选兼容版本并选出最佳版本，
添加、依赖解析、更新和迁移都使用同一套规则。
"""

from typing import Iterable, List, Optional

from modpacker.api.loaders import LoaderVersionClient
from modpacker.exceptions import ConfigError
from modpacker.models import (
    LATEST,
    Candidate,
    Modpack,
    ProjectType,
    ReleaseChannel,
    Target,
)


class VersionMatcher:
    """版本匹配器"""

    def __init__(self, loaders: Optional[LoaderVersionClient] = None):
        self.loaders = loaders

    def filter_compatible(
        self,
        candidates: Iterable[Candidate],
        target: Target,
        project_type: ProjectType,
        release_channel: Optional[ReleaseChannel] = None,
    ) -> List[Candidate]:
        """
        筛选兼容的候选版本

        Args:
            candidates: 候选版本
            target: 目标平台
            project_type: 项目类型，只有模组检查加载器
            release_channel: 允许的最不稳定发布通道

        Returns:
            兼容的候选版本，保持输入顺序；没有时返回空列表
        """
        game_versions = target.game_versions
        loaders = target.loader_names
        compatible = []
        for candidate in candidates:
            if not candidate.available:
                continue
            if candidate.game_versions.isdisjoint(game_versions):
                continue
            if project_type is ProjectType.MOD and candidate.loaders.isdisjoint(loaders):
                continue
            if release_channel is not None and candidate.channel.rank > release_channel.rank:
                continue
            compatible.append(candidate)
        return compatible

    def best_match(self, candidates: Iterable[Candidate], target: Target) -> Optional[Candidate]:
        """
        选出最佳版本

        依次比较：是否支持主游戏版本、发布时间、是否支持主加载器；
        全部相同时保留平台给出的顺序。
        """

        def rank(candidate: Candidate):
            return (
                target.minecraft_version in candidate.game_versions,
                candidate.published,
                target.loader.value in candidate.loaders,
            )

        # reverse=True 的排序仍然是稳定的
        ordered = sorted(candidates, key=rank, reverse=True)
        return ordered[0] if ordered else None

    def select(
        self,
        candidates: Iterable[Candidate],
        target: Target,
        project_type: ProjectType,
        release_channel: Optional[ReleaseChannel] = None,
    ) -> Optional[Candidate]:
        """filter_compatible + best_match"""
        return self.best_match(
            self.filter_compatible(candidates, target, project_type, release_channel),
            target,
        )

    @staticmethod
    def matches_primary(candidate: Candidate, target: Target) -> bool:
        """候选版本是否支持主游戏版本"""
        return target.minecraft_version in candidate.game_versions

    async def get_loader_version(self, modpack: Modpack) -> str:
        """
        获取整合包实际使用的加载器版本

        loader_version 为 'latest' 时查询最新版本。
        """
        version = modpack.versions.loader_version
        if version != LATEST:
            return version
        if self.loaders is None:
            raise ConfigError("未配置加载器版本查询客户端")
        return await self.loaders.get_latest_loader_version(
            modpack.versions.loader, modpack.versions.minecraft
        )
