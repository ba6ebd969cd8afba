"""
依赖处理服务

从一组种子 Addon 出发按层展开必需依赖，去重并打破循环依赖。
"""

import asyncio
from typing import Iterable, List, Optional, Set, Tuple

from loguru import logger

from modpacker.config import DependencyPolicy
from modpacker.exceptions import ModpackerError
from modpacker.index import Index
from modpacker.models import Addon, GenericId
from modpacker.services.addon_resolver import AddonResolver, DependencyEdge
from modpacker.utils import sorted_by_name


class DependencyResolver:
    """依赖解析器"""

    def __init__(
        self,
        resolver: AddonResolver,
        policy: DependencyPolicy = DependencyPolicy.EAGER,
    ):
        self.resolver = resolver
        self.policy = policy
        self.failures: List[Tuple[str, ModpackerError]] = []

    @staticmethod
    def _claim(checked: Set[GenericId], generic_id: GenericId) -> bool:
        """检查并登记 ID，已登记过返回 False"""
        if generic_id in checked:
            return False
        checked.add(generic_id)
        return True

    def _fail(self, what: str, error: ModpackerError) -> None:
        if self.policy is DependencyPolicy.EAGER:
            raise error
        logger.warning(f"[跳过] {what}: {error}")
        self.failures.append((what, error))

    async def _edges(self, addon: Addon) -> List[DependencyEdge]:
        try:
            return await self.resolver.dependencies(addon)
        except ModpackerError as e:
            self._fail(f"{addon.name} 的依赖", e)
            return []

    async def _resolve_edge(self, edge: DependencyEdge) -> Optional[Addon]:
        try:
            addon = await self.resolver.resolve_edge(edge)
        except ModpackerError as e:
            self._fail(f"依赖 {edge.registry.value}:{edge.project_id}", e)
            return None
        logger.debug(f"[依赖] {edge.project_id} -> {addon.name}")
        return addon

    async def resolve(
        self,
        seeds: Iterable[Addon],
        index: Optional[Index] = None,
        known_ids: Iterable[GenericId] = (),
    ) -> List[Addon]:
        """
        解析依赖闭包

        Args:
            seeds: 种子 Addon（结果中不包含）
            index: 已有索引，其中的 Addon 视为已解析
            known_ids: 额外视为已解析的 ID

        Returns:
            新发现的依赖，按名称排序
        """
        seeds = list(seeds)
        self.failures = []
        index = index or Index()

        checked: Set[GenericId] = set(known_ids) | index.generic_ids()
        checked.update(seed.generic_id() for seed in seeds)

        found: List[Addon] = []
        frontier = seeds
        while frontier:
            edge_lists = await asyncio.gather(*(self._edges(addon) for addon in frontier))
            claimed = [
                edge
                for edges in edge_lists
                for edge in edges
                if self._claim(checked, edge.generic_id())
            ]
            resolved = await asyncio.gather(*(self._resolve_edge(edge) for edge in claimed))

            frontier = []
            for addon in resolved:
                if addon is None:
                    continue
                checked.add(addon.generic_id())
                found.append(addon)
                frontier.append(addon)

        # 与已有索引和种子按 ID/名称去重
        pending = Index(list(index) + seeds)
        return sorted_by_name(addon for addon in found if pending.add(addon, quiet=True))
