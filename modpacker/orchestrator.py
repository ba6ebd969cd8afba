"""
主协调器

整合存储、解析、依赖、打包和迁移组件，实现各个命令的流程编排。
索引和 pack.toml 只在命令的最后一步写入。
"""

import asyncio
from dataclasses import replace
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple, Union

from loguru import logger

from modpacker.api import Registries
from modpacker.config import Settings
from modpacker.exceptions import (
    APINotFoundError,
    ConfigError,
    ConfigValidationError,
    InvalidIdError,
    NoCompatibleVersionsError,
    UnsupportedProjectTypeError,
)
from modpacker.index import Index, IndexStore, ModpackStore
from modpacker.models import (
    LATEST,
    Addon,
    AddonOptions,
    GithubSource,
    ModLoader,
    Modpack,
    PackOptions,
    ProjectType,
    Versions,
)
from modpacker.packager import (
    CurseforgePackCodec,
    ImportResult,
    MrpackCodec,
    PackwizCodec,
)
from modpacker.services import (
    AddonResolver,
    Chooser,
    Classification,
    Compatibility,
    DependencyResolver,
    MigrationEngine,
    MigrationResult,
    VersionMatcher,
    with_version,
)
from modpacker.utils import sorted_by_name

# 确认回调：(提示) -> 是否继续
Confirm = Callable[[str], bool]

IMPORT_FORMATS = ("mrpack", "curseforge", "packwiz")


def _decline(message: str) -> bool:
    return False


def _copy(options: Optional[AddonOptions]) -> Optional[AddonOptions]:
    return replace(options) if options is not None else None


class ModpackerOrchestrator:
    """modpacker 主协调器"""

    def __init__(
        self,
        root: Optional[Path] = None,
        settings: Optional[Settings] = None,
        registries: Optional[Registries] = None,
        chooser: Optional[Chooser] = None,
        confirm: Optional[Confirm] = None,
    ):
        self.settings = settings or Settings()
        self.store = ModpackStore(root)
        self._owns_registries = registries is None
        self.registries = registries or Registries.from_settings(self.settings)
        self.chooser = chooser
        self.confirm = confirm or _decline

    @property
    def root(self) -> Path:
        return self.store.root

    async def close(self):
        if self._owns_registries:
            await self.registries.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # ---------------------------------------------------------------- 基础

    async def _load(self) -> Tuple[Modpack, IndexStore, Index]:
        """读取 pack.toml 和索引"""
        modpack = self.store.read()
        index_store = self.store.index_store(modpack)
        index = await index_store.load()
        return modpack, index_store, index

    def _resolver(self, modpack: Modpack) -> AddonResolver:
        return AddonResolver(self.registries, modpack.target, VersionMatcher(self.registries.loaders))

    async def _loader_version(self, modpack: Modpack) -> str:
        return await VersionMatcher(self.registries.loaders).get_loader_version(modpack)

    # ---------------------------------------------------------------- init

    async def init(
        self,
        name: str,
        loader: ModLoader,
        minecraft_version: Optional[str] = None,
        loader_version: str = LATEST,
        authors: Sequence[str] = (),
        description: Optional[str] = None,
        version: str = "0.1.0",
    ) -> Modpack:
        """
        创建新的整合包

        Args:
            name: 整合包名称
            loader: 模组加载器
            minecraft_version: 游戏版本，不指定时使用最新正式版
            loader_version: 加载器版本，默认 'latest'
        """
        if self.store.exists():
            raise ConfigError(f"{self.store.path} 已存在，整合包已初始化")

        if minecraft_version is None:
            minecraft_version = await self.registries.loaders.get_latest_minecraft_release()
            logger.info(f"使用最新的 Minecraft 版本 {minecraft_version}")

        options = PackOptions()
        if loader is ModLoader.QUILT:
            options.acceptable_loaders = [ModLoader.FABRIC]

        modpack = Modpack(
            name=name,
            version=version,
            versions=Versions(
                minecraft=minecraft_version, loader=loader, loader_version=loader_version
            ),
            authors=list(authors),
            description=description,
            options=options,
        )
        self.store.write(modpack)
        logger.success(f"[完成] 已创建整合包 {name} ({minecraft_version}, {loader.value})")
        return modpack

    # ----------------------------------------------------------------- add

    async def _resolve_item(
        self,
        idx: str,
        resolve: Callable[[str], Awaitable[Addon]],
        search: Optional[Callable[[str, Optional[Chooser]], Awaitable[Optional[Union[str, int]]]]],
    ) -> Optional[Addon]:
        """
        解析单个条目，找不到时改为搜索

        可恢复的错误只输出警告并返回 None。
        """
        try:
            try:
                return await resolve(idx)
            except (APINotFoundError, InvalidIdError):
                if search is None:
                    raise
                logger.info(f"[搜索] 找不到 '{idx}'，尝试搜索")
                found = await search(idx, self.chooser)
                if found is None:
                    logger.warning(f"[跳过] 没有选择 '{idx}' 的搜索结果")
                    return None
                return await resolve(str(found))
        except (NoCompatibleVersionsError, UnsupportedProjectTypeError, APINotFoundError) as e:
            logger.warning(f"[跳过] {idx}: {e}")
            return None

    async def _add(
        self,
        index_store: IndexStore,
        index: Index,
        resolver: AddonResolver,
        addons: Sequence[Optional[Addon]],
    ) -> List[Addon]:
        """把解析出的 Addon 与其依赖加入索引并写回"""
        added = [addon for addon in addons if addon is not None and index.add(addon)]
        if not added:
            return []

        dependency_resolver = DependencyResolver(resolver, self.settings.dependency_policy)
        dependencies = await dependency_resolver.resolve(added, index)
        for addon in dependencies:
            index.add(addon)
            logger.info(f"[依赖] 添加依赖 {addon.name}")

        new = sorted_by_name(added + dependencies)
        await index_store.write(new)
        for addon in new:
            logger.success(f"[完成] 已添加 {addon.name}")
        return new

    async def add_modrinth(
        self,
        ids: Sequence[str],
        version: Optional[str] = None,
        options: Optional[AddonOptions] = None,
    ) -> List[Addon]:
        """
        添加 Modrinth 项目

        Args:
            ids: 项目 ID、slug 或搜索词
            version: 指定版本 ID，只能在添加单个项目时使用
            options: Addon 选项
        """
        if version is not None and len(ids) != 1:
            raise ConfigValidationError("指定版本时只能添加一个项目")

        modpack, index_store, index = await self._load()
        resolver = self._resolver(modpack)

        async def _resolve(idx: str) -> Addon:
            return await resolver.resolve_modrinth(idx, version, _copy(options))

        addons = await asyncio.gather(
            *(self._resolve_item(idx, _resolve, resolver.search_modrinth) for idx in ids)
        )
        return await self._add(index_store, index, resolver, addons)

    async def add_curseforge(
        self,
        ids: Sequence[str],
        file_id: Optional[int] = None,
        options: Optional[AddonOptions] = None,
    ) -> List[Addon]:
        """
        添加 CurseForge 项目

        Args:
            ids: 数字 ID、slug 或搜索词
            file_id: 指定文件 ID，只能在添加单个项目时使用
            options: Addon 选项
        """
        if file_id is not None and len(ids) != 1:
            raise ConfigValidationError("指定文件时只能添加一个项目")

        modpack, index_store, index = await self._load()
        resolver = self._resolver(modpack)

        async def _resolve(idx: str) -> Addon:
            return await resolver.resolve_curseforge(idx, file_id, _copy(options))

        addons = await asyncio.gather(
            *(self._resolve_item(idx, _resolve, resolver.search_curseforge) for idx in ids)
        )
        return await self._add(index_store, index, resolver, addons)

    async def add_github(
        self,
        repo: str,
        tag: Optional[str] = None,
        asset_index: Optional[int] = None,
        project_type: ProjectType = ProjectType.MOD,
    ) -> List[Addon]:
        """添加 GitHub release"""
        modpack, index_store, index = await self._load()
        resolver = self._resolver(modpack)

        async def _resolve(repo_ref: str) -> Addon:
            return await resolver.resolve_github(
                repo_ref, tag, asset_index, self.chooser, project_type
            )

        addon = await self._resolve_item(repo, _resolve, None)
        return await self._add(index_store, index, resolver, [addon])

    # ------------------------------------------------- remove / pin / list

    async def remove(self, queries: Sequence[str]) -> List[Addon]:
        """移除匹配的 Addon"""
        _, index_store, index = await self._load()
        removed = []
        for query in queries:
            addon = index.find(query)
            if addon is None:
                logger.warning(f"[跳过] 整合包中没有 '{query}'")
                continue
            index.remove(addon)
            removed.append(addon)

        await index_store.remove(removed)
        for addon in removed:
            logger.success(f"[完成] 已移除 {addon.name}")
        return removed

    async def set_pinned(self, query: str, pinned: bool) -> Addon:
        """固定或取消固定 Addon 的版本"""
        _, index_store, index = await self._load()
        addon = index.find(query)
        if addon is None:
            raise ConfigValidationError(f"整合包中没有 '{query}'")
        addon.options.pinned = pinned
        await index_store.write([addon])
        logger.success(f"[完成] {addon.name} 已{'固定' if pinned else '取消固定'}")
        return addon

    async def pin(self, query: str) -> Addon:
        return await self.set_pinned(query, True)

    async def unpin(self, query: str) -> Addon:
        return await self.set_pinned(query, False)

    async def list_addons(self, verbose: bool = False) -> List[Dict[str, str]]:
        """按名称排序的 Addon 列表"""
        _, _, index = await self._load()
        rows = []
        for addon in index.sorted():
            row = {"name": addon.name}
            if verbose:
                registry, _ = addon.generic_id()
                row.update(
                    {
                        "type": addon.project_type.value,
                        "source": registry,
                        "id": addon.source.native_id,
                        "version": addon.version_label,
                        "pinned": "yes" if addon.options.pinned else "no",
                    }
                )
            rows.append(row)
        return rows

    # -------------------------------------------------------------- update

    async def _update_one(self, resolver: AddonResolver, addon: Addon) -> Optional[Addon]:
        source = addon.source
        if isinstance(source, GithubSource):
            release = await resolver.latest_github_release(source)
            if release is None or release.tag_name == source.tag:
                return None
            return with_version(addon, release.tag_name)

        candidates = await resolver.candidates(addon)
        candidate = resolver.best_candidate(addon, candidates)
        if candidate is None:
            logger.warning(f"[跳过] {addon.name} 没有兼容的版本")
            return None
        if candidate.id == str(source.version):
            return None
        return with_version(addon, candidate.id)

    async def _update_safe(self, resolver: AddonResolver, addon: Addon) -> Optional[Addon]:
        try:
            return await self._update_one(resolver, addon)
        except (NoCompatibleVersionsError, UnsupportedProjectTypeError, APINotFoundError) as e:
            logger.warning(f"[跳过] 无法更新 {addon.name}: {e}")
            return None

    async def update(self) -> List[Addon]:
        """把未固定的 Addon 更新到最佳兼容版本"""
        modpack, index_store, index = await self._load()
        resolver = self._resolver(modpack)
        targets = [addon for addon in index.sorted() if not addon.options.pinned]

        results = await asyncio.gather(*(self._update_safe(resolver, addon) for addon in targets))
        updated = [addon for addon in results if addon is not None]
        for addon in updated:
            index.remove(addon)
            index.add(addon)
            logger.success(f"[更新] {addon.name} -> {addon.version_label}")

        await index_store.write(updated)
        if not updated:
            logger.info("所有 Addon 都已是最新版本")
        return updated

    # -------------------------------------------------------------- export

    def _overrides_path(self, modpack: Modpack, overrides_path: Optional[Path]) -> Optional[Path]:
        if overrides_path is not None:
            return Path(overrides_path)
        if modpack.options.overrides_path:
            return self.root / modpack.options.overrides_path
        return None

    async def export_mrpack(
        self, output_dir: Optional[Path] = None, overrides_path: Optional[Path] = None
    ) -> Path:
        """导出为 .mrpack"""
        modpack, _, index = await self._load()
        codec = MrpackCodec(self.registries, self.settings)
        return await codec.export(
            modpack,
            index,
            Path(output_dir) if output_dir else Path.cwd(),
            await self._loader_version(modpack),
            overrides_path=self._overrides_path(modpack, overrides_path),
        )

    async def export_curseforge(
        self, output_dir: Optional[Path] = None, overrides_path: Optional[Path] = None
    ) -> Path:
        """导出为 CurseForge .zip"""
        modpack, _, index = await self._load()
        codec = CurseforgePackCodec(self.registries, self.settings)
        return await codec.export(
            modpack,
            index,
            Path(output_dir) if output_dir else Path.cwd(),
            await self._loader_version(modpack),
            overrides_path=self._overrides_path(modpack, overrides_path),
        )

    async def export_packwiz(self, output_dir: Path) -> Path:
        """导出为 packwiz 目录"""
        modpack, _, index = await self._load()
        codec = PackwizCodec(self.registries, self.settings)
        return await codec.export(modpack, index, Path(output_dir), await self._loader_version(modpack))

    # -------------------------------------------------------------- import

    async def import_pack(self, kind: str, source: Union[str, Path]) -> Optional[ImportResult]:
        """
        导入外部整合包

        Args:
            kind: 'mrpack'、'curseforge' 或 'packwiz'
            source: 压缩包路径，packwiz 为 pack.toml 的路径或 URL

        Returns:
            导入结果，已有整合包且未确认覆盖时返回 None
        """
        if kind not in IMPORT_FORMATS:
            raise ConfigValidationError(f"不支持的导入格式: {kind}")

        old_index: Optional[Tuple[IndexStore, Index]] = None
        if self.store.exists():
            if not self.confirm(f"{self.store.path} 已存在，是否覆盖？"):
                logger.warning("[跳过] 已取消导入")
                return None
            _, old_store, index = await self._load()
            old_index = (old_store, index)

        if kind == "mrpack":
            result = await MrpackCodec(self.registries, self.settings).import_pack(Path(source), self.root)
        elif kind == "curseforge":
            result = await CurseforgePackCodec(self.registries, self.settings).import_pack(
                Path(source), self.root
            )
        else:
            result = await PackwizCodec(self.registries, self.settings).import_pack(str(source), self.root)

        if old_index is not None:
            old_store, index = old_index
            await old_store.remove(index)
        self.store.write(result.modpack)
        await self.store.index_store(result.modpack).write(result.index.sorted())

        for name, reason in result.errors:
            logger.warning(f"[跳过] {name}: {reason}")
        logger.success(f"[完成] 已导入 {result.modpack.name}，共 {len(result.index)} 个 Addon")
        return result

    # ------------------------------------------------------------- migrate

    async def migrate_minecraft(
        self,
        minecraft_version: str,
        remove_incompatible: Optional[bool] = None,
    ) -> Optional[MigrationResult]:
        """
        迁移到新的 Minecraft 版本

        Args:
            minecraft_version: 新的游戏版本
            remove_incompatible: 是否移除不兼容的 Addon，None 时询问

        Returns:
            迁移结果，未确认时返回 None
        """
        modpack, index_store, index = await self._load()
        resolver = self._resolver(modpack)
        engine = MigrationEngine(resolver)
        target = modpack.target.with_minecraft(minecraft_version)

        classifications = await engine.classify_all(index.sorted(), target)
        self._report(classifications)

        if not self.confirm(f"是否迁移到 Minecraft {minecraft_version}？"):
            logger.warning("[跳过] 已取消迁移")
            return None

        counts = engine.summarize(classifications)
        if remove_incompatible is None:
            remove_incompatible = counts[Compatibility.INCOMPATIBLE] > 0 and self.confirm(
                "是否移除不兼容的 Addon？"
            )

        loader_version = None
        if modpack.versions.loader_version != LATEST:
            loader_version = await self.registries.loaders.get_latest_loader_version(
                modpack.versions.loader, minecraft_version
            )

        result = engine.apply(
            modpack,
            index,
            classifications,
            minecraft_version=minecraft_version,
            loader_version=loader_version,
            remove_incompatible=remove_incompatible,
        )
        await index_store.remove(result.removed)
        await index_store.write(result.updated)
        self.store.write(modpack)
        logger.success(
            f"[完成] 已迁移到 Minecraft {minecraft_version}: "
            f"更新 {len(result.updated)} 个，移除 {len(result.removed)} 个"
        )
        return result

    @staticmethod
    def _report(classifications: Sequence[Classification]) -> None:
        for classification in classifications:
            name = classification.addon.name
            status = classification.status
            if status is Compatibility.COMPATIBLE:
                logger.info(f"[兼容] {name}")
            elif status is Compatibility.PARTIAL:
                logger.info(f"[部分兼容] {name}")
            elif status is Compatibility.INCOMPATIBLE:
                logger.warning(f"[不兼容] {name}")
            else:
                logger.warning(f"[未知] {name}")

    async def migrate_loader(self, loader_version: Optional[str] = None) -> Modpack:
        """
        改写加载器版本

        Args:
            loader_version: 新版本，不指定时使用最新版本
        """
        modpack = self.store.read()
        loader = modpack.versions.loader
        minecraft = modpack.versions.minecraft
        if loader_version is None:
            loader_version = await self.registries.loaders.get_latest_loader_version(loader, minecraft)
        else:
            available = await self.registries.loaders.get_loader_versions(loader, minecraft)
            if loader_version not in available:
                raise ConfigValidationError(
                    f"{loader.value} {loader_version} 不支持 Minecraft {minecraft}",
                    context={"loader_version": loader_version},
                )

        modpack.versions.loader_version = loader_version
        self.store.write(modpack)
        logger.success(f"[完成] 加载器版本已设为 {loader.value} {loader_version}")
        return modpack
