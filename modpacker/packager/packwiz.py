"""
packwiz 格式

pack.toml 指向 index.toml，index.toml 列出每个 .pw.toml 描述文件及其 sha256。
描述文件中的 [update] 表记录文件在平台上的来源。
"""

import asyncio
import hashlib
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

import aiofiles
import aiohttp
import toml
from loguru import logger

from modpacker.exceptions import BadImportError, PackwizError
from modpacker.index import Index, is_local_path
from modpacker.models import (
    LOADER_NAMES,
    Addon,
    CurseforgeSource,
    GithubSource,
    ModLoader,
    Modpack,
    ModrinthSource,
    ProjectType,
    Side,
    Versions,
)
from modpacker.packager.archive import OVERRIDES
from modpacker.packager.base import ImportResult, PackCodec
from modpacker.packager.cache import ExportCache

PACK_FORMAT = "packwiz:1.1.0"
PACK_FILE = "pack.toml"
INDEX_FILE = "index.toml"
DESCRIPTOR_SUFFIX = ".pw.toml"
INDEX_HASH_FORMAT = "sha256"
FILE_HASH_FORMAT = "sha1"
CURSEFORGE_MODE = "metadata:curseforge"
DEFAULT_VERSION = "0.1.0"


def hash_text(text: str, algorithm: str = INDEX_HASH_FORMAT) -> str:
    return hashlib.new(algorithm, text.encode("utf-8")).hexdigest()


def descriptor_path(addon: Addon) -> str:
    """描述文件在包内的路径 '<文件夹>/<slug>.pw.toml'"""
    return f"{addon.project_type.folder}/{addon.slug}{DESCRIPTOR_SUFFIX}"


def build_descriptor(
    addon: Addon,
    filename: str,
    sha1: str,
    url: Optional[str] = None,
) -> Dict[str, Any]:
    """生成 .pw.toml 内容"""
    download: Dict[str, Any] = {}
    if url:
        download["url"] = url
    download["hash-format"] = FILE_HASH_FORMAT
    download["hash"] = sha1

    source = addon.source
    if isinstance(source, ModrinthSource):
        update = {"modrinth": {"mod-id": source.id, "version": source.version}}
    elif isinstance(source, CurseforgeSource):
        download["mode"] = CURSEFORGE_MODE
        update = {"curseforge": {"project-id": source.id, "file-id": source.version}}
    else:
        update = {
            "github": {"slug": source.repo, "tag": source.tag, "asset-index": source.asset_index}
        }

    return {
        "name": addon.name,
        "filename": filename,
        "side": addon.side.value,
        "download": download,
        "update": update,
    }


def source_from_update(update: Dict[str, Any]):
    """
    从 [update] 表还原来源

    Raises:
        KeyError: 表中缺少字段
        LookupError: 没有可识别的来源
    """
    if "modrinth" in update:
        table = update["modrinth"]
        return ModrinthSource(id=str(table["mod-id"]), version=str(table["version"]))
    if "curseforge" in update:
        table = update["curseforge"]
        return CurseforgeSource(id=int(table["project-id"]), version=int(table["file-id"]))
    if "github" in update:
        table = update["github"]
        return GithubSource(
            repo=table["slug"], tag=table["tag"], asset_index=int(table.get("asset-index", 0))
        )
    raise LookupError("描述文件没有可识别的 [update] 来源")


class PackwizReader:
    """从本地目录或 HTTP 地址读取 packwiz 文件"""

    def __init__(self, source: str, session: Optional[aiohttp.ClientSession] = None):
        if not source.endswith(PACK_FILE):
            raise BadImportError(f"packwiz 来源必须指向 {PACK_FILE}: {source}")
        self.source = source
        self.remote = urlparse(source).scheme in ("http", "https")
        self.base = source[: -len(PACK_FILE)].rstrip("/")
        if not self.remote and not Path(source).is_file():
            raise BadImportError(f"找不到 {source}")
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owned_session = True
        return self._session

    def location(self, relative: str) -> str:
        if not self.base:
            return relative
        return f"{self.base}/{relative}"

    async def read_bytes(self, relative: str) -> bytes:
        if not is_local_path(relative):
            raise BadImportError(f"packwiz 文件路径无效: {relative}")
        location = self.location(relative)
        if not self.remote:
            try:
                async with aiofiles.open(location, "rb") as f:
                    return await f.read()
            except OSError as e:
                raise BadImportError(f"无法读取 {location}: {e}") from e

        try:
            async with self.session.get(location) as response:
                if response.status != 200:
                    raise BadImportError(
                        f"获取 {location} 失败: HTTP {response.status}",
                        context={"url": location, "status": response.status},
                    )
                return await response.read()
        except aiohttp.ClientError as e:
            raise BadImportError(f"获取 {location} 失败: {e}") from e

    async def read_text(self, relative: str) -> str:
        data = await self.read_bytes(relative)
        return data.decode("utf-8")

    async def close(self):
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()


def _verify(label: str, text: str, expected: Optional[str], algorithm: str) -> None:
    """摘要不一致时只警告"""
    if not expected:
        return
    if algorithm not in hashlib.algorithms_available:
        logger.debug(f"[校验] 不支持的摘要算法 {algorithm}，跳过 {label}")
        return
    if hash_text(text, algorithm) != expected.lower():
        logger.warning(f"[校验] {label} 的 {algorithm} 摘要不匹配")


def _loads(label: str, text: str) -> Dict[str, Any]:
    try:
        return toml.loads(text)
    except toml.TomlDecodeError as e:
        raise BadImportError(f"{label} 格式错误: {e}") from e


class PackwizCodec(PackCodec):
    """packwiz 目录导入导出"""

    format_name = "packwiz"
    error = PackwizError

    async def export(
        self,
        modpack: Modpack,
        index: Index,
        output_dir: Path,
        loader_version: str,
        cache: Optional[ExportCache] = None,
    ) -> Path:
        """
        导出到 output_dir

        output_dir 必须存在且为空。GitHub 附件会被下载以计算 sha1。
        """
        output_dir = Path(output_dir)
        if not output_dir.is_dir():
            raise PackwizError(f"导出目录不存在: {output_dir}", context={"path": str(output_dir)})
        if any(output_dir.iterdir()):
            raise PackwizError(f"导出目录不为空: {output_dir}", context={"path": str(output_dir)})

        cache = cache or ExportCache()
        addons = index.sorted()

        with cache:
            modrinth_files = await self.modrinth_files(addons)
            curseforge_files = await self.curseforge_files(addons)
            github_assets = await self.github_assets(addons)

            downloads = self.download_manager()
            github_targets = {}
            for gid, asset in github_assets.items():
                dest = cache.downloads / gid[1].replace("/", "_") / asset.name
                downloads.enqueue(asset.browser_download_url, dest, label=asset.name)
                github_targets[gid] = dest
            await downloads.run()

            descriptors: List[Tuple[str, str]] = []
            for addon in addons:
                gid = addon.generic_id()
                if isinstance(addon.source, ModrinthSource):
                    file = modrinth_files[gid]
                    if not file.sha1:
                        raise PackwizError(f"{addon.name} 的文件缺少 sha1 摘要")
                    data = build_descriptor(addon, file.filename, file.sha1, url=file.url)
                elif isinstance(addon.source, CurseforgeSource):
                    file = curseforge_files[gid]
                    if not file.sha1:
                        raise PackwizError(f"{addon.name} 的文件缺少 sha1 摘要")
                    data = build_descriptor(addon, file.file_name, file.sha1)
                else:
                    asset = github_assets[gid]
                    sha1 = await self.verifier.calc(str(github_targets[gid]), FILE_HASH_FORMAT)
                    data = build_descriptor(addon, asset.name, sha1, url=asset.browser_download_url)
                descriptors.append((descriptor_path(addon), toml.dumps(data)))

        index_data = {"hash-format": INDEX_HASH_FORMAT, "files": []}
        for relative, text in descriptors:
            await self._write(output_dir / relative, text)
            index_data["files"].append({"file": relative, "hash": hash_text(text), "metafile": True})

        index_text = toml.dumps(index_data)
        await self._write(output_dir / INDEX_FILE, index_text)
        await self._write(
            output_dir / PACK_FILE,
            toml.dumps(self.pack_data(modpack, loader_version, hash_text(index_text))),
        )

        logger.success(f"[导出] 已生成 packwiz 目录 {output_dir}")
        return output_dir

    @staticmethod
    def pack_data(modpack: Modpack, loader_version: str, index_hash: str) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": modpack.name}
        if modpack.authors:
            data["author"] = modpack.authors[0]
        data["version"] = modpack.version
        if modpack.description:
            data["description"] = modpack.description
        data["pack-format"] = PACK_FORMAT
        data["index"] = {
            "file": INDEX_FILE,
            "hash-format": INDEX_HASH_FORMAT,
            "hash": index_hash,
        }
        data["versions"] = {
            "minecraft": modpack.versions.minecraft,
            modpack.versions.loader.value: loader_version,
        }
        return data

    @staticmethod
    async def _write(path: Path, text: str) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(path, "w", encoding="utf-8") as f:
            await f.write(text)

    async def import_pack(
        self,
        source: str,
        root: Path,
        session: Optional[aiohttp.ClientSession] = None,
    ) -> ImportResult:
        """
        从本地或远程的 packwiz pack.toml 导入

        描述文件还原为 Addon，索引中的普通文件写入 root/overrides。
        缺少来源的描述文件会被跳过并记录。
        """
        root = Path(root)
        async with PackwizReader(str(source), session=session) as reader:
            pack = _loads(PACK_FILE, await reader.read_text(PACK_FILE))
            modpack = self._modpack(pack)

            index_table = pack.get("index") or {}
            index_file = index_table.get("file", INDEX_FILE)
            index_text = await reader.read_text(index_file)
            _verify(
                index_file,
                index_text,
                index_table.get("hash"),
                index_table.get("hash-format", INDEX_HASH_FORMAT),
            )
            index_data = _loads(index_file, index_text)
            default_format = index_data.get("hash-format", INDEX_HASH_FORMAT)

            result = ImportResult(modpack=modpack)
            entries = index_data.get("files", [])
            metafiles = [
                e for e in entries if e.get("metafile") or e["file"].endswith(DESCRIPTOR_SUFFIX)
            ]
            plain_files = [e for e in entries if e not in metafiles]

            addons = await asyncio.gather(
                *(self._read_descriptor(reader, entry, default_format, result) for entry in metafiles)
            )
            for addon in addons:
                if addon is not None:
                    result.index.add(addon)

            for entry in plain_files:
                data = await reader.read_bytes(entry["file"])
                dest = root / OVERRIDES / PurePosixPath(entry["file"])
                dest.parent.mkdir(parents=True, exist_ok=True)
                async with aiofiles.open(dest, "wb") as f:
                    await f.write(data)
            if plain_files:
                modpack.options.overrides_path = OVERRIDES

        logger.success(f"[导入] 从 packwiz 导入 {len(result.index)} 个 Addon")
        return result

    async def _read_descriptor(
        self,
        reader: PackwizReader,
        entry: Dict[str, Any],
        default_format: str,
        result: ImportResult,
    ) -> Optional[Addon]:
        relative = entry["file"]
        try:
            text = await reader.read_text(relative)
            _verify(relative, text, entry.get("hash"), entry.get("hash-format", default_format))
            data = _loads(relative, text)
            source = source_from_update(data.get("update") or {})
            side = data.get("side", Side.BOTH.value)
            return Addon(
                name=data["name"],
                project_type=ProjectType.from_folder(PurePosixPath(relative).parts[0]),
                side=Side(side) if side in {s.value for s in Side} else Side.BOTH,
                source=source,
            )
        except (BadImportError, LookupError, ValueError) as e:
            logger.warning(f"[跳过] {relative}: {e}")
            result.errors.append((relative, str(e)))
            return None

    @staticmethod
    def _modpack(pack: Dict[str, Any]) -> Modpack:
        versions = pack.get("versions") or {}
        minecraft = versions.get("minecraft")
        if not minecraft:
            raise BadImportError(f"{PACK_FILE} 中没有 minecraft 版本")
        loader_key = next((key for key in versions if key in LOADER_NAMES), None)
        if loader_key is None:
            raise BadImportError(
                f"{PACK_FILE} 中没有受支持的加载器",
                context={"versions": sorted(versions)},
            )
        if "name" not in pack:
            raise BadImportError(f"{PACK_FILE} 中缺少 name")

        author = pack.get("author")
        return Modpack(
            name=pack["name"],
            version=str(pack.get("version") or DEFAULT_VERSION),
            versions=Versions(
                minecraft=str(minecraft),
                loader=ModLoader(loader_key),
                loader_version=str(versions[loader_key]),
            ),
            authors=[author] if author else [],
            description=pack.get("description"),
        )
