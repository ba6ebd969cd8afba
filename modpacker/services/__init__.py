"""
modpacker 服务层

包含兼容性筛选、Addon 解析、依赖解析和迁移。
"""

from modpacker.services.version_matcher import VersionMatcher
from modpacker.services.addon_resolver import (
    AddonResolver,
    Chooser,
    DependencyEdge,
    with_version,
)
from modpacker.services.dependency_resolver import DependencyResolver
from modpacker.services.migration import (
    Classification,
    Compatibility,
    MigrationEngine,
    MigrationResult,
)

__all__ = [
    "VersionMatcher",
    "AddonResolver",
    "Chooser",
    "DependencyEdge",
    "with_version",
    "DependencyResolver",
    "Classification",
    "Compatibility",
    "MigrationEngine",
    "MigrationResult",
]
