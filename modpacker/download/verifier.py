"""
文件校验器

计算 SHA1/SHA256/SHA512 等摘要，校验下载结果。
"""

import hashlib
import os
from typing import Dict, Iterable, Optional

import aiofiles

CHUNK_SIZE = 64 * 1024


class FileVerifier:
    """文件校验器"""

    @staticmethod
    def hash_bytes(data: bytes, algorithm: str = "sha1") -> str:
        return hashlib.new(algorithm, data).hexdigest()

    @staticmethod
    async def calc_hashes(
        file_path: str, algorithms: Iterable[str] = ("sha1", "sha512")
    ) -> Dict[str, str]:
        """
        一次读取计算多个摘要

        Args:
            file_path: 文件路径
            algorithms: hashlib 算法名

        Returns:
            {算法: 十六进制摘要}
        """
        hashers = {name: hashlib.new(name) for name in algorithms}
        async with aiofiles.open(file_path, "rb") as f:
            while True:
                data = await f.read(CHUNK_SIZE)
                if not data:
                    break
                for hasher in hashers.values():
                    hasher.update(data)
        return {name: hasher.hexdigest() for name, hasher in hashers.items()}

    @staticmethod
    async def calc(file_path: str, algorithm: str = "sha1") -> Optional[str]:
        """计算单个摘要，文件不存在时返回 None"""
        if not os.path.isfile(file_path):
            return None
        hashes = await FileVerifier.calc_hashes(file_path, (algorithm,))
        return hashes[algorithm]

    @staticmethod
    async def verify(file_path: str, expected: Optional[str], algorithm: str = "sha1") -> bool:
        """
        校验文件摘要

        Returns:
            是否匹配（没有预期值时只要求文件存在）
        """
        if not expected:
            return os.path.isfile(file_path)
        current = await FileVerifier.calc(file_path, algorithm)
        return current is not None and current.lower() == expected.lower()

    @staticmethod
    def get_size(file_path: str) -> int:
        """获取文件大小"""
        try:
            return os.path.getsize(file_path)
        except OSError:
            return 0
