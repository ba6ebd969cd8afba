"""
迁移服务

针对新的游戏版本或加载器重新判断每个 Addon 的兼容性，并改写版本指针。
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional

from loguru import logger

from modpacker.exceptions import APIError, ResolveError
from modpacker.index import Index
from modpacker.models import Addon, Candidate, GithubSource, Modpack, Target
from modpacker.services.addon_resolver import AddonResolver, with_version
from modpacker.utils import sorted_by_name


class Compatibility(Enum):
    """迁移兼容性"""

    COMPATIBLE = "compatible"
    PARTIAL = "partial"  # 只通过 acceptable_versions 兼容
    INCOMPATIBLE = "incompatible"
    UNKNOWN = "unknown"  # 无法通过平台判断


@dataclass
class Classification:
    """单个 Addon 的迁移判断结果"""

    addon: Addon
    status: Compatibility
    candidate: Optional[Candidate] = None

    @property
    def new_version(self) -> Optional[str]:
        return self.candidate.id if self.candidate is not None else None

    def migrated(self) -> Optional[Addon]:
        """指向新版本的 Addon，无法迁移时为 None"""
        if self.candidate is None:
            return None
        return with_version(self.addon, self.candidate.id)


@dataclass
class MigrationResult:
    """迁移结果：需要写回和需要删除的 Addon"""

    updated: List[Addon] = field(default_factory=list)
    removed: List[Addon] = field(default_factory=list)


class MigrationEngine:
    """迁移引擎"""

    def __init__(self, resolver: AddonResolver):
        self.resolver = resolver
        self.matcher = resolver.matcher

    async def classify(self, addon: Addon, target: Target) -> Classification:
        """
        判断 Addon 在新目标平台上的兼容性

        Args:
            addon: 要判断的 Addon
            target: 新的目标平台

        Returns:
            判断结果，兼容时附带选中的候选版本
        """
        if isinstance(addon.source, GithubSource):
            return Classification(addon, Compatibility.UNKNOWN)

        candidates = await self.resolver.candidates(addon)
        addon_target = target.for_addon(addon.options)
        candidate = self.resolver.best_candidate(addon, candidates, target)

        if candidate is None:
            return Classification(addon, Compatibility.INCOMPATIBLE)
        if self.matcher.matches_primary(candidate, addon_target):
            return Classification(addon, Compatibility.COMPATIBLE, candidate)
        return Classification(addon, Compatibility.PARTIAL, candidate)

    async def _classify_safe(self, addon: Addon, target: Target) -> Classification:
        try:
            return await self.classify(addon, target)
        except (APIError, ResolveError) as e:
            logger.warning(f"[跳过] 无法检查 {addon.name} 的兼容性: {e}")
            return Classification(addon, Compatibility.UNKNOWN)

    async def classify_all(self, addons: Iterable[Addon], target: Target) -> List[Classification]:
        """并发判断全部 Addon，结果按名称排序"""
        results = await asyncio.gather(*(self._classify_safe(addon, target) for addon in addons))
        return sorted_by_name(results, key=lambda c: c.addon.name)

    @staticmethod
    def summarize(classifications: Iterable[Classification]) -> Dict[Compatibility, int]:
        counts = {status: 0 for status in Compatibility}
        for classification in classifications:
            counts[classification.status] += 1
        return counts

    @staticmethod
    def apply(
        modpack: Modpack,
        index: Index,
        classifications: Iterable[Classification],
        minecraft_version: Optional[str] = None,
        loader_version: Optional[str] = None,
        remove_incompatible: bool = False,
    ) -> MigrationResult:
        """
        在内存中应用迁移

        Args:
            modpack: 整合包，目标版本会被改写
            index: 索引，不兼容的 Addon 可能被移除
            classifications: classify_all 的结果
            minecraft_version: 新的游戏版本
            loader_version: 新的加载器版本
            remove_incompatible: 是否移除不兼容的 Addon

        Returns:
            需要写回和删除的 Addon
        """
        result = MigrationResult()

        for classification in classifications:
            if classification.status is Compatibility.INCOMPATIBLE:
                if remove_incompatible:
                    index.remove(classification.addon)
                    result.removed.append(classification.addon)
                continue

            migrated = classification.migrated()
            if migrated is None or migrated == classification.addon:
                continue
            index.remove(classification.addon)
            index.add(migrated, quiet=True)
            result.updated.append(migrated)

        if minecraft_version is not None:
            modpack.versions.minecraft = minecraft_version
        if loader_version is not None:
            modpack.versions.loader_version = loader_version

        return result
