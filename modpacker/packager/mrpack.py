"""
Modrinth 整合包格式 (.mrpack)

modrinth.index.json 中列出可直接下载的文件，其余文件放在 overrides/ 下。
"""

from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional

from loguru import logger

from modpacker.exceptions import BadImportError, MrpackError
from modpacker.index import Index
from modpacker.models import (
    Addon,
    CurseforgeSource,
    GithubSource,
    ModLoader,
    Modpack,
    ModrinthSource,
    PackOptions,
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

MANIFEST = "modrinth.index.json"
EXTENSION = ".mrpack"
FORMAT_VERSION = 1
GAME = "minecraft"


@dataclass
class MrpackFile:
    """modrinth.index.json 中的一个文件条目"""

    path: str
    hashes: Dict[str, str]
    downloads: List[str]
    file_size: int
    env: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"path": self.path, "hashes": dict(self.hashes)}
        if self.env is not None:
            data["env"] = dict(self.env)
        data["downloads"] = list(self.downloads)
        data["fileSize"] = self.file_size
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "MrpackFile":
        return cls(
            path=data["path"],
            hashes=dict(data.get("hashes") or {}),
            downloads=list(data.get("downloads") or []),
            file_size=int(data.get("fileSize", 0)),
            env=data.get("env"),
        )


@dataclass
class MrpackManifest:
    """modrinth.index.json"""

    name: str
    version_id: str
    dependencies: Dict[str, str]
    files: List[MrpackFile] = field(default_factory=list)
    summary: Optional[str] = None
    format_version: int = FORMAT_VERSION
    game: str = GAME

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "formatVersion": self.format_version,
            "game": self.game,
            "versionId": self.version_id,
            "name": self.name,
        }
        if self.summary is not None:
            data["summary"] = self.summary
        data["files"] = [file.to_dict() for file in self.files]
        data["dependencies"] = dict(self.dependencies)
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "MrpackManifest":
        try:
            return cls(
                name=data["name"],
                version_id=str(data["versionId"]),
                dependencies={k: str(v) for k, v in data["dependencies"].items()},
                files=[MrpackFile.from_dict(file) for file in data.get("files", [])],
                summary=data.get("summary"),
                format_version=int(data.get("formatVersion", FORMAT_VERSION)),
                game=data.get("game", GAME),
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise BadImportError(f"{MANIFEST} 内容无效: {e}") from e


def _env(addon: Addon) -> Dict[str, str]:
    client, server = addon.side.env()
    return {"client": client, "server": server}


class MrpackCodec(PackCodec):
    """.mrpack 导入导出"""

    format_name = "mrpack"
    error = MrpackError

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
        导出为 <name>-<version>.mrpack

        Modrinth 与 GitHub Addon 写入清单，CurseForge 文件下载后放入 overrides/。

        Args:
            modpack: 整合包描述
            index: 全部 Addon
            output_dir: 输出目录
            loader_version: 已确定的加载器版本
            overrides_path: 原样打包的 overrides 目录
            cache: 导出缓存目录
        """
        overrides_path = self.overrides_path(modpack, overrides_path)
        cache = cache or ExportCache()
        addons = index.sorted()

        with cache:
            manifest = MrpackManifest(
                name=modpack.name,
                version_id=modpack.version,
                summary=modpack.description,
                dependencies={
                    GAME: modpack.versions.minecraft,
                    modpack.versions.loader.mrpack_key: loader_version,
                },
            )

            modrinth_files = await self.modrinth_files(addons)
            github_assets = await self.github_assets(addons)
            curseforge_files = await self.curseforge_files(addons)

            downloads = self.download_manager()
            github_targets = {}
            for addon in addons:
                folder = modpack.options.export_folder(addon.project_type)
                gid = addon.generic_id()
                if isinstance(addon.source, ModrinthSource):
                    file = modrinth_files[gid]
                    if "sha1" not in file.hashes or "sha512" not in file.hashes:
                        raise MrpackError(f"{addon.name} 的文件缺少 sha1/sha512 摘要")
                    manifest.files.append(
                        MrpackFile(
                            path=f"{folder}/{file.filename}",
                            hashes={"sha1": file.hashes["sha1"], "sha512": file.hashes["sha512"]},
                            downloads=[file.url],
                            file_size=file.size,
                            env=_env(addon),
                        )
                    )
                elif isinstance(addon.source, GithubSource):
                    asset = github_assets[gid]
                    dest = cache.downloads / folder / asset.name
                    downloads.enqueue(asset.browser_download_url, dest, label=addon.name)
                    github_targets[gid] = (addon, folder, asset, dest)
                elif isinstance(addon.source, CurseforgeSource):
                    file = curseforge_files[gid]
                    if not file.download_url:
                        logger.warning(f"[跳过] {addon.name} 不允许第三方下载，未打包")
                        continue
                    downloads.enqueue(
                        file.download_url,
                        cache.overrides / folder / file.file_name,
                        sha1=file.sha1,
                        label=addon.name,
                    )

            await downloads.run()

            for addon, folder, asset, dest in github_targets.values():
                hashes = await self.verifier.calc_hashes(str(dest), ("sha1", "sha512"))
                manifest.files.append(
                    MrpackFile(
                        path=f"{folder}/{asset.name}",
                        hashes=hashes,
                        downloads=[asset.browser_download_url],
                        file_size=self.verifier.get_size(str(dest)),
                        env=_env(addon),
                    )
                )

            builder = ArchiveBuilder(cache.archive)
            await builder.write_json(MANIFEST, manifest.to_dict())
            builder.add_tree(overrides_path)
            builder.add_tree(cache.overrides)
            output = builder.build(Path(output_dir) / f"{modpack.archive_stem}{EXTENSION}")

        logger.success(f"[导出] 已生成 {output}")
        return output

    async def import_pack(self, path: Path, root: Path) -> ImportResult:
        """
        从 .mrpack 导入

        清单中的文件按 SHA1 还原为 Modrinth Addon；overrides/ 解压到 root 下，
        其中能识别的 jar 再用 CurseForge 指纹还原为 Addon 并删除。
        """
        root = Path(root)
        with open_archive(path, EXTENSION) as archive:
            manifest = MrpackManifest.from_dict(read_json_member(archive, MANIFEST))
            extracted = extract_overrides(archive, root)

        versions = self._versions(manifest.dependencies)
        modpack = Modpack(
            name=manifest.name,
            version=manifest.version_id,
            versions=versions,
            description=manifest.summary,
            options=PackOptions(overrides_path=OVERRIDES if extracted else None),
        )
        result = ImportResult(modpack=modpack)

        by_sha1 = {}
        for file in manifest.files:
            sha1 = file.hashes.get("sha1")
            if sha1:
                by_sha1[sha1] = file
            else:
                result.errors.append((file.path, "缺少 sha1 摘要"))

        matched = await self.add_modrinth_hashes(list(by_sha1), result.index)
        for sha1, file in by_sha1.items():
            if sha1 not in matched:
                logger.warning(f"[跳过] Modrinth 上找不到 {file.path}")
                result.errors.append((file.path, "Modrinth 上找不到该文件"))

        # overrides 中与清单重复的文件
        matched_paths = {PurePosixPath(by_sha1[sha1].path).as_posix() for sha1 in matched}
        for relative in extracted:
            if relative in matched_paths:
                (root / OVERRIDES / relative).unlink(missing_ok=True)

        mods_dir = self.mods_dir(root, modpack)
        await self.reconcile_curseforge(mods_dir, result.index)
        remove_if_empty(mods_dir)
        remove_if_empty(root / OVERRIDES)
        if extracted and not (root / OVERRIDES).exists():
            modpack.options.overrides_path = None

        logger.success(f"[导入] 从 {Path(path).name} 导入 {len(result.index)} 个 Addon")
        return result

    @staticmethod
    def _versions(dependencies: Dict[str, str]) -> Versions:
        minecraft = dependencies.get(GAME)
        if not minecraft:
            raise BadImportError(f"{MANIFEST} 中没有 minecraft 版本")
        for key, value in dependencies.items():
            loader = ModLoader.from_mrpack_key(key)
            if loader is not None:
                return Versions(minecraft=minecraft, loader=loader, loader_version=value)
        raise BadImportError(
            f"{MANIFEST} 中没有受支持的加载器",
            context={"dependencies": sorted(dependencies)},
        )
