"""
下载管理器

固定数量的工作协程消费下载队列，限制并发下载数，失败时重试。
"""

import asyncio
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse
from urllib.request import url2pathname

import aiofiles
import aiohttp
from loguru import logger

from modpacker.download.queue import DownloadQueue, DownloadTask
from modpacker.download.verifier import FileVerifier
from modpacker.exceptions import (
    DownloadChecksumError,
    DownloadError,
    DownloadFileError,
    DownloadNetworkError,
)


@dataclass
class DownloadStats:
    """下载统计"""

    total: int = 0
    completed: int = 0
    failed: int = 0
    bytes_downloaded: int = 0


def file_url_to_path(url: str) -> Path:
    """file:// URL 转为本地路径"""
    parsed = urlparse(url)
    return Path(url2pathname(unquote(parsed.path)))


class DownloadManager:
    """下载管理器"""

    def __init__(
        self,
        max_concurrent: int = 10,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        session: Optional[aiohttp.ClientSession] = None,
        user_agent: Optional[str] = None,
    ):
        self.max_concurrent = max_concurrent
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.queue = DownloadQueue()
        self.verifier = FileVerifier()
        self.stats = DownloadStats()
        self._session = session
        self._owned_session = session is None
        self._headers = {"User-Agent": user_agent} if user_agent else {}
        self._workers: List[asyncio.Task] = []
        self._errors: List[Tuple[DownloadTask, DownloadError]] = []

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(headers=self._headers)
            self._owned_session = True
        return self._session

    def enqueue(
        self,
        url: str,
        dest: Path,
        sha1: Optional[str] = None,
        label: str = "",
    ) -> bool:
        """添加下载任务"""
        added = self.queue.put(DownloadTask(url=url, dest=Path(dest), sha1=sha1, label=label))
        if added:
            self.stats.total += 1
            logger.debug(f"[队列] '{label or dest.name}' 已加入下载队列")
        return added

    async def download(self, task: DownloadTask) -> Path:
        """
        下载单个文件，网络错误时按指数退避重试

        Raises:
            DownloadNetworkError: 重试后仍然失败
            DownloadChecksumError: SHA1 不匹配
        """
        task.dest.parent.mkdir(parents=True, exist_ok=True)

        if task.url.startswith("file://"):
            return await self._copy_local_file(task)

        for attempt in range(self.max_retries + 1):
            try:
                await self._fetch(task)
                break
            except (aiohttp.ClientError, asyncio.TimeoutError, DownloadNetworkError) as e:
                task.dest.unlink(missing_ok=True)
                if attempt >= self.max_retries:
                    raise DownloadNetworkError(
                        f"下载 '{task.filename}' 失败: {e}",
                        context={"url": task.url},
                    ) from e
                delay = self.retry_delay * (2**attempt)
                logger.warning(
                    f"[重试] 下载 '{task.filename}' 失败 (第 {attempt + 1} 次): {e}. "
                    f"{delay:.1f}s 后重试..."
                )
                await asyncio.sleep(delay)

        await self._check(task)
        logger.success(f"[完成] '{task.filename}' 下载完成")
        return task.dest

    async def _fetch(self, task: DownloadTask) -> None:
        async with self.session.get(task.url) as response:
            if response.status != 200:
                raise DownloadNetworkError(
                    f"HTTP {response.status}",
                    context={"url": task.url, "status": response.status},
                )
            async with aiofiles.open(task.dest, "wb") as f:
                async for chunk in response.content.iter_chunked(8192):
                    await f.write(chunk)
                    self.stats.bytes_downloaded += len(chunk)

    async def _check(self, task: DownloadTask) -> None:
        if task.sha1 and not await self.verifier.verify(str(task.dest), task.sha1, "sha1"):
            task.dest.unlink(missing_ok=True)
            raise DownloadChecksumError(
                f"SHA1 校验失败: {task.filename}",
                context={"file": task.filename, "expected": task.sha1},
            )

    async def _copy_local_file(self, task: DownloadTask) -> Path:
        """复制本地文件"""
        src = file_url_to_path(task.url)
        logger.info(f"[复制] 本地文件: {src.name}")
        try:
            shutil.copy2(src, task.dest)
        except OSError as e:
            raise DownloadFileError(
                f"复制文件失败: {src}", context={"error": str(e)}
            ) from e
        await self._check(task)
        logger.success(f"[完成] 本地文件复制完成: {src.name}")
        return task.dest

    def _fail(self, task: DownloadTask, error: DownloadError) -> None:
        self.stats.failed += 1
        self._errors.append((task, error))
        logger.error(f"[错误] 下载 '{task.filename}' 最终失败: {error}")

    async def _worker(self):
        """下载工作协程"""
        while True:
            task = await self.queue.get()
            try:
                await self.download(task)
                self.stats.completed += 1
            except DownloadError as e:
                self._fail(task, e)
            except Exception as e:
                self._fail(
                    task,
                    DownloadFileError(
                        f"写入 '{task.filename}' 失败: {e}",
                        context={"file": str(task.dest), "error": str(e)},
                    ),
                )
            finally:
                self.queue.task_done()

    async def start(self):
        """启动工作协程"""
        logger.debug(f"[启动] 下载器启动，最大并发数: {self.max_concurrent}")
        self._workers = [
            asyncio.create_task(self._worker(), name=f"downloader-{i}")
            for i in range(self.max_concurrent)
        ]

    async def stop(self):
        """停止工作协程并关闭 session"""
        for worker in self._workers:
            worker.cancel()
        if self._workers:
            await asyncio.gather(*self._workers, return_exceptions=True)
            self._workers.clear()

        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def run(self):
        """
        下载队列中的全部文件

        Raises:
            DownloadError: 任一文件下载失败
        """
        await self.start()
        try:
            await self.queue.join()
        finally:
            await self.stop()

        if self._errors:
            failed = [task.filename for task, _ in self._errors]
            raise DownloadError(
                f"{len(failed)} 个文件下载失败: {', '.join(failed)}",
                context={"failed": failed},
            )

    def get_failed(self) -> List[str]:
        """获取失败的下载列表"""
        return [task.filename for task, _ in self._errors]

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()
