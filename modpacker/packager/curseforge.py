"""
CurseForge 整合包格式 (.zip)

manifest.json 列出 CurseForge 文件，modlist.html 是人类可读的列表，
其他平台的文件放在 overrides/ 下。
"""

import html
from pathlib import Path
from typing import Any, Dict, List, Optional

from loguru import logger

from modpacker.exceptions import BadImportError, CurseforgePackError
from modpacker.index import Index
from modpacker.models import (
    Addon,
    CurseforgeMod,
    CurseforgeSource,
    GithubSource,
    ModLoader,
    Modpack,
    ModrinthSource,
    PackOptions,
    Side,
    Versions,
)
from modpacker.packager.archive import (
    OVERRIDES,
    ArchiveBuilder,
    extract_overrides,
    open_archive,
    read_json_member,
    remove_if_empty,
)
from modpacker.packager.base import ImportResult, PackCodec
from modpacker.packager.cache import ExportCache

MANIFEST = "manifest.json"
MODLIST = "modlist.html"
EXTENSION = ".zip"
MANIFEST_TYPE = "minecraftModpack"
MANIFEST_VERSION = 1


def render_modlist(mods: List[CurseforgeMod]) -> str:
    """生成 modlist.html"""
    lines = ["<ul>"]
    for mod in mods:
        url = html.escape(mod.website_url or "", quote=True)
        lines.append(f'<li><a href="{url}">{html.escape(mod.name)}</a></li>')
    lines.append("</ul>")
    return "\n".join(lines)


def parse_loader_id(loader_id: str) -> Versions:
    """
    解析 'fabric-0.15.3' 形式的加载器 ID

    Returns:
        minecraft 版本为空的 Versions
    """
    name, _, version = loader_id.partition("-")
    try:
        loader = ModLoader.parse(name)
    except ValueError:
        raise BadImportError(f"不支持的加载器: {loader_id}") from None
    if not version:
        raise BadImportError(f"加载器 ID 中缺少版本: {loader_id}")
    return Versions(minecraft="", loader=loader, loader_version=version)


class CurseforgePackCodec(PackCodec):
    """CurseForge .zip 导入导出"""

    format_name = "curseforge"
    error = CurseforgePackError

    def manifest(self, modpack: Modpack, addons: List[Addon], loader_version: str) -> Dict[str, Any]:
        return {
            "minecraft": {
                "version": modpack.versions.minecraft,
                "modLoaders": [
                    {"id": f"{modpack.versions.loader.value}-{loader_version}", "primary": True}
                ],
            },
            "manifestType": MANIFEST_TYPE,
            "manifestVersion": MANIFEST_VERSION,
            "name": modpack.name,
            "version": modpack.version,
            "author": ", ".join(modpack.authors),
            "files": [
                {"projectID": a.source.id, "fileID": a.source.version, "required": True}
                for a in addons
                if isinstance(a.source, CurseforgeSource)
            ],
            "overrides": OVERRIDES,
        }

    async def export(
        self,
        modpack: Modpack,
        index: Index,
        output_dir: Path,
        loader_version: str,
        overrides_path: Optional[Path] = None,
        cache: Optional[ExportCache] = None,
    ) -> Path:
        """
        导出为 <name>-<version>.zip

        CurseForge Addon 写入 manifest.json，Modrinth 与 GitHub 文件下载后放入 overrides/。
        """
        overrides_path = self.overrides_path(modpack, overrides_path)
        cache = cache or ExportCache()
        addons = index.sorted()

        with cache:
            curseforge_ids = [a.source.id for a in addons if isinstance(a.source, CurseforgeSource)]
            mods = await self.registries.curseforge.get_mods(curseforge_ids) if curseforge_ids else []
            mods_by_id = {mod.id: mod for mod in mods}

            modrinth_files = await self.modrinth_files(addons)
            github_assets = await self.github_assets(addons)

            downloads = self.download_manager()
            for addon in addons:
                folder = cache.overrides / modpack.options.export_folder(addon.project_type)
                gid = addon.generic_id()
                if isinstance(addon.source, ModrinthSource):
                    file = modrinth_files[gid]
                    downloads.enqueue(file.url, folder / file.filename, sha1=file.sha1, label=addon.name)
                elif isinstance(addon.source, GithubSource):
                    asset = github_assets[gid]
                    downloads.enqueue(asset.browser_download_url, folder / asset.name, label=addon.name)
            await downloads.run()

            builder = ArchiveBuilder(cache.archive)
            await builder.write_json(MANIFEST, self.manifest(modpack, addons, loader_version))
            await builder.write_text(
                MODLIST,
                render_modlist([mods_by_id[i] for i in curseforge_ids if i in mods_by_id]),
            )
            builder.add_tree(overrides_path)
            builder.add_tree(cache.overrides)
            output = builder.build(Path(output_dir) / f"{modpack.archive_stem}{EXTENSION}")

        logger.success(f"[导出] 已生成 {output}")
        return output

    async def import_pack(self, path: Path, root: Path) -> ImportResult:
        """
        从 CurseForge .zip 导入

        manifest.json 中的文件还原为 CurseForge Addon；overrides/ 解压到 root 下，
        其中能识别的 jar 再按 SHA1 还原为 Modrinth Addon 并删除。
        """
        root = Path(root)
        with open_archive(path, EXTENSION) as archive:
            manifest = read_json_member(archive, MANIFEST)
            modpack = self._modpack(manifest)
            extracted = extract_overrides(archive, root)
        if extracted:
            modpack.options.overrides_path = OVERRIDES
        result = ImportResult(modpack=modpack)

        file_ids = {}
        for entry in manifest.get("files", []):
            try:
                file_ids[int(entry["projectID"])] = int(entry["fileID"])
            except (KeyError, TypeError, ValueError) as e:
                raise BadImportError(f"{MANIFEST} 文件条目无效: {entry}") from e

        mods = await self.registries.curseforge.get_mods(list(file_ids)) if file_ids else []
        found = set()
        for mod in mods:
            found.add(mod.id)
            if mod.project_type is None:
                logger.warning(f"[跳过] {mod.name} 的项目类型不受支持")
                result.errors.append((mod.name, "项目类型不受支持"))
                continue
            result.index.add(
                Addon(
                    name=mod.name,
                    project_type=mod.project_type,
                    side=Side.BOTH,
                    source=CurseforgeSource(id=mod.id, version=file_ids[mod.id]),
                )
            )
        for project_id in file_ids:
            if project_id not in found:
                result.errors.append((str(project_id), "CurseForge 上找不到该项目"))

        await self.reconcile_modrinth(self.mods_dir(root, modpack), result.index)
        remove_if_empty(root / OVERRIDES)
        if extracted and not (root / OVERRIDES).exists():
            modpack.options.overrides_path = None

        logger.success(f"[导入] 从 {Path(path).name} 导入 {len(result.index)} 个 Addon")
        return result

    @staticmethod
    def _modpack(manifest: Dict[str, Any]) -> Modpack:
        try:
            minecraft = manifest["minecraft"]
            loaders = minecraft.get("modLoaders") or []
            primary = next(
                (item for item in loaders if item.get("primary")), loaders[0] if loaders else None
            )
            if primary is None:
                raise BadImportError(f"{MANIFEST} 中没有加载器")
            versions = parse_loader_id(primary["id"])
            versions.minecraft = str(minecraft["version"])
            author = manifest.get("author")
            return Modpack(
                name=manifest["name"],
                version=str(manifest.get("version") or "0.1.0"),
                versions=versions,
                authors=[author] if author else [],
                options=PackOptions(),
            )
        except (KeyError, TypeError, AttributeError) as e:
            raise BadImportError(f"{MANIFEST} 内容无效: {e}") from e
