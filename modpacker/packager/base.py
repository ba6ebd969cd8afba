"""
打包格式的公共部分

导出时按平台批量查询文件信息，导入时把 overrides 中的文件与平台对账。
"""

import asyncio
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from loguru import logger

from modpacker.api import Registries, curseforge_fingerprint
from modpacker.config import Settings
from modpacker.download import DownloadManager, FileVerifier
from modpacker.exceptions import APIError, ConfigError, PackagerError
from modpacker.index import Index
from modpacker.models import (
    Addon,
    CurseforgeFile,
    CurseforgeSource,
    GenericId,
    GithubSource,
    Modpack,
    ModrinthSource,
    ProjectType,
    ReleaseAsset,
    Side,
    VersionFile,
)
from modpacker.packager.archive import OVERRIDES, remove_if_empty


@dataclass
class ImportResult:
    """
    导入结果

    Attributes:
        modpack: 新的整合包描述
        index: 导入的 Addon
        errors: 跳过的条目 (名称, 原因)
    """

    modpack: Modpack
    index: Index = field(default_factory=Index)
    errors: List[Tuple[str, str]] = field(default_factory=list)


class PackCodec:
    """整合包格式的编解码基类"""

    #: 格式名，用于日志
    format_name = ""
    error = PackagerError

    def __init__(self, registries: Registries, settings: Optional[Settings] = None):
        self.registries = registries
        self.settings = settings or Settings()
        self.verifier = FileVerifier()

    def overrides_path(self, modpack: Modpack, path: Optional[Path] = None) -> Optional[Path]:
        """导出时原样打包的 overrides 目录，必须存在"""
        path = path or modpack.options.overrides_path
        if path is None:
            return None
        path = Path(path)
        if not path.is_dir():
            raise self.error(f"overrides 目录不存在: {path}", context={"path": str(path)})
        return path

    def download_manager(self) -> DownloadManager:
        return DownloadManager(
            max_concurrent=self.settings.max_concurrent_downloads,
            max_retries=self.settings.max_retries,
            retry_delay=self.settings.retry_delay,
            user_agent=self.settings.user_agent,
        )

    # ------------------------------------------------------------ 导出查询

    async def modrinth_files(self, addons: List[Addon]) -> Dict[GenericId, VersionFile]:
        """批量查询 Modrinth Addon 锁定版本的主文件"""
        addons = [a for a in addons if isinstance(a.source, ModrinthSource)]
        if not addons:
            return {}
        versions = await self.registries.modrinth.get_versions([a.source.version for a in addons])
        by_id = {version.id: version for version in versions}

        files = {}
        for addon in addons:
            version = by_id.get(addon.source.version)
            primary = version.primary_file() if version else None
            if primary is None:
                raise PackagerError(
                    f"{addon.name} 的版本 {addon.source.version} 没有可下载的文件",
                    context={"addon": addon.name},
                )
            files[addon.generic_id()] = primary
        return files

    async def curseforge_files(self, addons: List[Addon]) -> Dict[GenericId, CurseforgeFile]:
        """批量查询 CurseForge Addon 锁定的文件"""
        addons = [a for a in addons if isinstance(a.source, CurseforgeSource)]
        if not addons:
            return {}
        files = await self.registries.curseforge.get_files([a.source.version for a in addons])
        by_id = {file.id: file for file in files}

        result = {}
        for addon in addons:
            file = by_id.get(addon.source.version)
            if file is None:
                raise PackagerError(
                    f"找不到 {addon.name} 的文件 {addon.source.version}",
                    context={"addon": addon.name},
                )
            result[addon.generic_id()] = file
        return result

    async def github_assets(self, addons: List[Addon]) -> Dict[GenericId, ReleaseAsset]:
        """查询 GitHub Addon 锁定 release 中的附件"""

        async def _asset(addon: Addon) -> Tuple[GenericId, ReleaseAsset]:
            source: GithubSource = addon.source
            release = await self.registries.github.get_release_by_tag(source.repo, source.tag)
            if not 0 <= source.asset_index < len(release.assets):
                raise PackagerError(
                    f"{addon.name} 的 release {source.tag} 中没有第 {source.asset_index} 个附件",
                    context={"addon": addon.name},
                )
            return addon.generic_id(), release.assets[source.asset_index]

        pairs = await asyncio.gather(
            *(_asset(a) for a in addons if isinstance(a.source, GithubSource))
        )
        return dict(pairs)

    # ------------------------------------------------------------ 导入对账

    async def reconcile_curseforge(self, mods_dir: Path, index: Index) -> List[Path]:
        """
        用 CurseForge 指纹识别 mods_dir 中的 jar 文件

        识别出的文件转换为 CurseForge Addon 加入 index，并删除本地文件。
        该步骤尽力而为，API 不可用时只输出警告。

        Returns:
            被识别并删除的文件
        """
        jars = sorted(mods_dir.glob("*.jar")) if mods_dir.is_dir() else []
        if not jars:
            return []

        by_fingerprint: Dict[int, Path] = {}
        for jar in jars:
            by_fingerprint[curseforge_fingerprint(jar.read_bytes())] = jar

        try:
            matches = await self.registries.curseforge.get_fingerprint_matches(list(by_fingerprint))
            mods = await self.registries.curseforge.get_mods([m.id for m in matches]) if matches else []
        except (APIError, ConfigError) as e:
            logger.warning(f"[指纹] 无法查询 CurseForge 指纹，跳过对账: {e}")
            return []
        mods_by_id = {mod.id: mod for mod in mods}

        removed = []
        for match in matches:
            mod = mods_by_id.get(match.id)
            if mod is None or mod.project_type is None:
                continue
            index.add(
                Addon(
                    name=mod.name,
                    project_type=mod.project_type,
                    side=Side.BOTH,
                    source=CurseforgeSource(id=mod.id, version=match.file.id),
                )
            )
            path = by_fingerprint.get(match.file.fingerprint) or mods_dir / match.file.file_name
            if path.is_file():
                path.unlink()
                removed.append(path)
                logger.info(f"[指纹] {path.name} 识别为 CurseForge 项目 {mod.name}")

        remove_if_empty(mods_dir)
        return removed

    async def reconcile_modrinth(self, mods_dir: Path, index: Index) -> List[Path]:
        """
        用 SHA1 识别 mods_dir 中的 jar 文件

        识别出的文件转换为 Modrinth Addon 加入 index，并删除本地文件。

        Returns:
            被识别并删除的文件
        """
        jars = sorted(mods_dir.glob("*.jar")) if mods_dir.is_dir() else []
        if not jars:
            return []

        by_hash: Dict[str, Path] = {}
        for jar in jars:
            by_hash[await self.verifier.calc(str(jar), "sha1")] = jar

        removed = []
        for sha1 in await self.add_modrinth_hashes(list(by_hash), index):
            path = by_hash[sha1]
            path.unlink()
            removed.append(path)
            logger.info(f"[哈希] {path.name} 识别为 Modrinth 项目")

        remove_if_empty(mods_dir)
        return removed

    async def add_modrinth_hashes(self, hashes: List[str], index: Index) -> List[str]:
        """
        查询 SHA1 对应的 Modrinth 版本，并把项目加入 index

        Returns:
            识别成功的摘要
        """
        if not hashes:
            return []
        versions = await self.registries.modrinth.versions_from_hashes(hashes)
        if not versions:
            return []
        project_ids = sorted({version.project_id for version in versions.values()})
        projects = {p.id: p for p in await self.registries.modrinth.get_projects(project_ids)}

        matched = []
        for sha1, version in versions.items():
            project = projects.get(version.project_id)
            if project is None:
                continue
            index.add(
                Addon(
                    name=project.title,
                    project_type=project.project_type,
                    side=project.side,
                    source=ModrinthSource(id=project.id, version=version.id),
                )
            )
            matched.append(sha1)
        return matched

    @staticmethod
    def mods_dir(root: Path, modpack: Modpack) -> Path:
        return Path(root) / OVERRIDES / modpack.options.export_folder(ProjectType.MOD)
