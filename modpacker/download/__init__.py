"""
modpacker 下载层

包含下载管理、任务队列、文件校验等功能。
"""

from modpacker.download.manager import DownloadManager
from modpacker.download.queue import DownloadQueue, DownloadTask
from modpacker.download.verifier import FileVerifier

__all__ = [
    "DownloadManager",
    "DownloadQueue",
    "DownloadTask",
    "FileVerifier",
]
