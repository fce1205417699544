"""
文件校验器

计算并比对已下载文件的摘要，用于跳过已存在的文件和下载后的完整性检查。
"""

import hashlib
import os
from typing import Optional

import aiofiles


class FileVerifier:
    """文件校验器"""

    def __init__(self, algorithm: str = "sha1", block_size: int = 64 * 1024):
        if algorithm not in hashlib.algorithms_available:
            raise ValueError(f"不支持的摘要算法: {algorithm}")
        self.algorithm = algorithm
        self.block_size = block_size

    async def calc_hash(self, file_path: str) -> Optional[str]:
        """
        计算文件摘要

        Args:
            file_path: 文件路径

        Returns:
            十六进制摘要；文件不存在或不可读时返回 None
        """
        if not os.path.isfile(file_path):
            return None

        digest = hashlib.new(self.algorithm)
        try:
            async with aiofiles.open(file_path, "rb") as f:
                while True:
                    data = await f.read(self.block_size)
                    if not data:
                        break
                    digest.update(data)
            return digest.hexdigest()
        except OSError:
            return None

    async def verify(self, file_path: str, expected: Optional[str]) -> bool:
        """没有预期值时视为通过"""
        if not expected:
            return True

        current = await self.calc_hash(file_path)
        if current is None:
            return False
        return current.lower() == expected.lower()

    async def is_valid(self, file_path: str, expected: Optional[str] = None) -> bool:
        """文件存在且校验通过"""
        if not self.exists(file_path):
            return False
        return await self.verify(file_path, expected)

    @staticmethod
    def exists(file_path: str) -> bool:
        return os.path.isfile(file_path)

    @staticmethod
    def get_size(file_path: str) -> int:
        try:
            return os.path.getsize(file_path)
        except OSError:
            return 0
