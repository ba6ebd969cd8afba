"""
Addon 解析服务

把各平台的 ID/slug 解析为 Addon，提供搜索、依赖边查询和候选版本查询。
"""

import asyncio
import re
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Sequence, Union

from loguru import logger

from modpacker.api import Registries
from modpacker.exceptions import (
    InvalidIdError,
    NoCompatibleVersionsError,
    ResolveError,
    UnsupportedProjectTypeError,
)
from modpacker.models import (
    Addon,
    AddonOptions,
    Candidate,
    CurseforgeSource,
    GithubRelease,
    GithubSource,
    ModrinthSource,
    ProjectType,
    Registry,
    ReleaseFilter,
    Side,
    Target,
)
from modpacker.models.api import MINECRAFT_GAME_ID
from modpacker.services.version_matcher import VersionMatcher
from modpacker.utils import parse_github_repo

# (提示, 选项) -> 选中的序号，None 表示取消
Chooser = Callable[[str, Sequence[str]], Optional[int]]

_DIGITS = re.compile(r"\d+")


@dataclass(frozen=True)
class DependencyEdge:
    """一条必需依赖边"""

    registry: Registry
    project_id: str
    version_id: Optional[str] = None

    def generic_id(self):
        return (self.registry.value, self.project_id)


def pick_exact(titles: Sequence[str], query: str, chooser: Optional[Chooser]) -> Optional[int]:
    """标题与查询完全一致（不区分大小写）时直接选中，否则交给 chooser"""
    for idx, title in enumerate(titles):
        if title.lower() == query.lower():
            return idx
    if chooser is None:
        return None
    return chooser(f"'{query}' 的搜索结果", titles)


def derive_release_filter(release: GithubRelease, mc_version: str):
    """
    从 release 的标签或标题推导过滤正则

    游戏版本替换为 {mc_version}，其余数字替换为 \\d+。

    Returns:
        (ReleaseFilter, 正则或 None)
    """
    mc_version = mc_version.lower()
    for filter_by, text in ((ReleaseFilter.TAG, release.tag_name), (ReleaseFilter.TITLE, release.name)):
        lowered = (text or "").lower()
        if mc_version and mc_version in lowered:
            parts = [_DIGITS.sub(r"\\d+", re.escape(part)) for part in lowered.split(mc_version)]
            return filter_by, "{mc_version}".join(parts)
    return ReleaseFilter.NONE, None


class AddonResolver:
    """Addon 解析器"""

    def __init__(
        self,
        registries: Registries,
        target: Target,
        matcher: Optional[VersionMatcher] = None,
    ):
        self.registries = registries
        self.target = target
        self.matcher = matcher or VersionMatcher(registries.loaders)

    # ------------------------------------------------------------ Modrinth

    async def resolve_modrinth(
        self,
        idx: str,
        version_id: Optional[str] = None,
        options: Optional[AddonOptions] = None,
    ) -> Addon:
        """
        解析 Modrinth 项目

        Args:
            idx: 项目 ID 或 slug
            version_id: 指定版本，不指定时选择最佳兼容版本
            options: Addon 选项

        Raises:
            UnsupportedProjectTypeError: 整合包或插件
            NoCompatibleVersionsError: 没有兼容版本
        """
        options = options or AddonOptions()
        client = self.registries.modrinth

        if version_id:
            project, version = await asyncio.gather(
                client.get_project(idx), client.get_version(version_id)
            )
            candidate = version.to_candidate()
        else:
            project, versions = await asyncio.gather(
                client.get_project(idx), client.get_project_versions(idx)
            )
            candidate = None

        if not project.project_type.supported:
            raise UnsupportedProjectTypeError(project.title)

        if candidate is None:
            candidate = self.matcher.select(
                (v.to_candidate() for v in versions),
                self.target.for_addon(options),
                project.project_type,
                options.release_channel,
            )
            if candidate is None:
                raise NoCompatibleVersionsError(project.title)

        return Addon(
            name=project.title,
            project_type=project.project_type,
            side=project.side,
            source=ModrinthSource(id=project.id, version=candidate.id),
            options=options,
        )

    async def search_modrinth(self, query: str, chooser: Optional[Chooser] = None) -> Optional[str]:
        """搜索并返回选中的项目 ID"""
        hits = await self.registries.modrinth.search(query, game_version=self.target.minecraft_version)
        if not hits:
            logger.warning(f"[搜索] '{query}' 没有搜索结果")
            return None
        chosen = pick_exact([hit.title for hit in hits], query, chooser)
        return hits[chosen].project_id if chosen is not None else None

    # ---------------------------------------------------------- CurseForge

    async def resolve_curseforge(
        self,
        idx: Union[str, int],
        file_id: Optional[int] = None,
        options: Optional[AddonOptions] = None,
    ) -> Addon:
        """
        解析 CurseForge 项目

        Args:
            idx: 数字 ID 或 slug
            file_id: 指定文件，不指定时选择最佳兼容文件
            options: Addon 选项
        """
        options = options or AddonOptions()
        client = self.registries.curseforge

        if str(idx).isdigit():
            mod_id = int(idx)
            if file_id is not None:
                cf_mod, file = await asyncio.gather(
                    client.get_mod(mod_id), client.get_mod_file(mod_id, file_id)
                )
                files = [file]
            else:
                cf_mod, files = await asyncio.gather(
                    client.get_mod(mod_id), client.get_mod_files(mod_id)
                )
        else:
            cf_mod = await client.get_mod_by_slug(str(idx))
            if file_id is not None:
                files = [await client.get_mod_file(cf_mod.id, file_id)]
            else:
                files = await client.get_mod_files(cf_mod.id)

        project_type = cf_mod.project_type
        if cf_mod.game_id != MINECRAFT_GAME_ID or project_type is None:
            raise UnsupportedProjectTypeError(cf_mod.name)

        if file_id is not None:
            candidate = files[0].to_candidate()
        else:
            candidate = self.matcher.select(
                (f.to_candidate() for f in files),
                self.target.for_addon(options),
                project_type,
                options.release_channel,
            )
            if candidate is None:
                raise NoCompatibleVersionsError(cf_mod.name)

        return Addon(
            name=cf_mod.name,
            project_type=project_type,
            side=Side.BOTH,
            source=CurseforgeSource(id=cf_mod.id, version=int(candidate.id)),
            options=options,
        )

    async def search_curseforge(self, query: str, chooser: Optional[Chooser] = None) -> Optional[int]:
        """搜索并返回选中的项目 ID"""
        mods = await self.registries.curseforge.search(
            query, game_version=self.target.minecraft_version, loader=self.target.loader
        )
        if not mods:
            logger.warning(f"[搜索] '{query}' 没有搜索结果")
            return None
        chosen = pick_exact([m.name for m in mods], query, chooser)
        return mods[chosen].id if chosen is not None else None

    # -------------------------------------------------------------- GitHub

    async def resolve_github(
        self,
        repo_ref: str,
        tag: Optional[str] = None,
        asset_index: Optional[int] = None,
        chooser: Optional[Chooser] = None,
        project_type: ProjectType = ProjectType.UNKNOWN,
    ) -> Addon:
        """
        解析 GitHub release

        Args:
            repo_ref: 'owner/repo' 或仓库 URL
            tag: release 标签，不指定时由 chooser 选择（没有 chooser 时取最新）
            asset_index: 附件序号，不指定且有多个附件时由 chooser 选择
            chooser: 交互选择回调
            project_type: Addon 类型
        """
        repo = parse_github_repo(repo_ref)
        if repo is None:
            raise InvalidIdError(repo_ref, "github")

        releases = await self.registries.github.list_releases(repo)
        if not releases:
            raise NoCompatibleVersionsError(repo)

        if tag is not None:
            release = next((r for r in releases if r.tag_name == tag), None)
            if release is None:
                raise ResolveError(f"{repo} 中找不到标签为 '{tag}' 的 release")
        else:
            chosen = chooser("选择 release", [r.title for r in releases]) if chooser else 0
            if chosen is None:
                raise ResolveError("已取消选择 release")
            release = releases[chosen]

        if not release.assets:
            raise NoCompatibleVersionsError(f"{repo}@{release.tag_name}")

        if asset_index is None:
            if len(release.assets) == 1 or chooser is None:
                asset_index = 0
            else:
                asset_index = chooser("选择 release 附件", [a.name for a in release.assets])
                if asset_index is None:
                    raise ResolveError("已取消选择 release 附件")
        if not 0 <= asset_index < len(release.assets):
            raise ResolveError(f"{release.tag_name} 没有序号为 {asset_index} 的附件")

        filter_by, pattern = derive_release_filter(release, self.target.minecraft_version)

        return Addon(
            name=repo.split("/")[1],
            project_type=project_type,
            side=Side.BOTH,
            source=GithubSource(
                repo=repo,
                tag=release.tag_name,
                asset_index=asset_index,
                filter_by=filter_by,
                filter=pattern,
            ),
        )

    async def latest_github_release(self, source: GithubSource) -> Optional[GithubRelease]:
        """按 filter 找到最新的匹配 release，没有 filter 时返回 None"""
        pattern = source.release_pattern(self.target.minecraft_version)
        if pattern is None:
            return None
        releases = await self.registries.github.list_releases(source.repo)
        for release in releases:
            text = release.tag_name if source.filter_by is ReleaseFilter.TAG else release.name
            if pattern.fullmatch((text or "").lower()) and len(release.assets) > source.asset_index:
                return release
        return None

    # ---------------------------------------------------------- 依赖与版本

    async def dependencies(self, addon: Addon) -> List[DependencyEdge]:
        """当前版本的必需依赖"""
        source = addon.source
        if isinstance(source, ModrinthSource):
            version = await self.registries.modrinth.get_version(source.version)
            return [
                DependencyEdge(Registry.MODRINTH, dep.project_id, dep.version_id)
                for dep in version.dependencies
                if dep.required and dep.project_id
            ]
        if isinstance(source, CurseforgeSource):
            file = await self.registries.curseforge.get_mod_file(source.id, source.version)
            return [
                DependencyEdge(Registry.CURSEFORGE, str(dep.mod_id))
                for dep in file.dependencies
                if dep.required
            ]
        return []

    async def resolve_edge(self, edge: DependencyEdge) -> Addon:
        if edge.registry is Registry.MODRINTH:
            return await self.resolve_modrinth(edge.project_id, edge.version_id)
        if edge.registry is Registry.CURSEFORGE:
            return await self.resolve_curseforge(int(edge.project_id))
        raise ResolveError(f"不支持解析 {edge.registry.value} 依赖")

    async def candidates(self, addon: Addon) -> List[Candidate]:
        """Addon 所有版本的候选列表，GitHub 来源返回空列表"""
        source = addon.source
        if isinstance(source, ModrinthSource):
            versions = await self.registries.modrinth.get_project_versions(source.id)
            return [v.to_candidate() for v in versions]
        if isinstance(source, CurseforgeSource):
            files = await self.registries.curseforge.get_mod_files(source.id)
            return [f.to_candidate() for f in files]
        return []

    def best_candidate(self, addon: Addon, candidates: List[Candidate], target: Optional[Target] = None):
        """按 Addon 的选项对候选版本执行筛选和选择"""
        target = (target or self.target).for_addon(addon.options)
        return self.matcher.select(
            candidates, target, addon.project_type, addon.options.release_channel
        )


def with_version(addon: Addon, version: str) -> Addon:
    """返回指向新版本的 Addon 副本"""
    source = addon.source
    if isinstance(source, CurseforgeSource):
        new_source = replace(source, version=int(version))
    elif isinstance(source, GithubSource):
        new_source = replace(source, tag=version)
    else:
        new_source = replace(source, version=version)
    return replace(addon, source=new_source)
