"""
下载任务队列

按目标路径去重的 FIFO 队列。
"""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Set


@dataclass
class DownloadTask:
    """下载任务"""

    url: str
    dest: Path
    sha1: Optional[str] = None
    label: str = ""

    @property
    def filename(self) -> str:
        return self.dest.name


class DownloadQueue:
    """下载队列"""

    def __init__(self):
        self._queue: "asyncio.Queue[DownloadTask]" = asyncio.Queue()
        self._dests: Set[Path] = set()

    def put(self, task: DownloadTask) -> bool:
        """
        添加任务到队列

        Returns:
            True 如果任务是新添加的，False 如果目标路径已在队列中
        """
        dest = task.dest.resolve()
        if dest in self._dests:
            return False
        self._dests.add(dest)
        self._queue.put_nowait(task)
        return True

    async def get(self) -> DownloadTask:
        return await self._queue.get()

    def task_done(self):
        self._queue.task_done()

    def qsize(self) -> int:
        return self._queue.qsize()

    async def join(self):
        """等待所有任务完成"""
        await self._queue.join()
