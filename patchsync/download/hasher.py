"""
文件校验器

在后台线程中流式计算文件摘要，进度回调回到事件循环线程执行。
"""

import asyncio
import hashlib
import os
from typing import Callable, Optional

from patchsync.exceptions import FileIOError

CHUNK_SIZE = 4096
DEFAULT_PROGRESS_STEP = 1024 * 1024

ProgressCallback = Callable[[int], None]


class HashEngine:
    """流式 SHA-256 文件摘要计算"""

    def __init__(self, progress_step: int = DEFAULT_PROGRESS_STEP):
        self.progress_step = max(1, progress_step)

    def hash_sync(
        self, file_path: str, on_progress: Optional[ProgressCallback] = None
    ) -> str:
        """
        计算文件摘要（阻塞）

        Args:
            file_path: 文件路径
            on_progress: 进度回调，参数为 0-100 的整数百分比

        Returns:
            大写十六进制摘要
        """
        digest = hashlib.sha256()
        try:
            file_size = os.path.getsize(file_path)
            with open(file_path, "rb") as f:
                bytes_read = 0
                last_reported = 0
                while True:
                    chunk = f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    digest.update(chunk)
                    bytes_read += len(chunk)

                    if on_progress and bytes_read - last_reported >= self.progress_step:
                        on_progress(min(100, bytes_read * 100 // file_size))
                        last_reported = bytes_read
        except (IOError, OSError) as e:
            raise FileIOError(
                f"读取文件失败: {os.path.basename(file_path)}",
                context={"path": file_path, "error": str(e)},
            )

        if on_progress:
            on_progress(100)

        return digest.hexdigest().upper()

    async def hash(
        self, file_path: str, on_progress: Optional[ProgressCallback] = None
    ) -> str:
        """
        在后台线程计算文件摘要

        进度回调通过 call_soon_threadsafe 回到当前事件循环执行。
        """
        loop = asyncio.get_running_loop()

        forward = None
        if on_progress is not None:

            def forward(percent: int) -> None:
                loop.call_soon_threadsafe(on_progress, percent)

        digest = await loop.run_in_executor(None, self.hash_sync, file_path, forward)
        # 让已排队的进度回调先于调用方后续逻辑执行
        await asyncio.sleep(0)
        return digest

    async def verify(self, file_path: str, expected: Optional[str]) -> bool:
        """
        校验文件摘要是否匹配

        Returns:
            是否匹配（没有预期值则返回 True，文件无法读取返回 False）
        """
        if not expected:
            return True

        try:
            current = await self.hash(file_path)
        except FileIOError:
            return False

        return current == expected.upper()
