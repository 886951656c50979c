"""
补丁传输层

先尝试清单中的下载链接，失败后仅重试一次备用地址（固定基础路径 + 文件名）。
只上报字节级进度，速度与预计时间由调用方计算。
"""

import asyncio
import os
from typing import Awaitable, Callable, List, Optional

import aiofiles
import aiohttp
from loguru import logger

from patchsync.exceptions import DownloadNetworkError, FileIOError, IntegrityError
from patchsync.models import ManifestEntry

CHUNK_SIZE = 8192
PROGRESS_INTERVAL = 64 * 1024
READ_TIMEOUT = 60.0

ByteProgressCallback = Callable[[int, int], None]
Verifier = Callable[[str], Awaitable[bool]]


class Transport:
    """HTTP 补丁下载"""

    def __init__(
        self,
        fallback_base_url: str,
        connect_timeout: float = 10.0,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.fallback_base_url = fallback_base_url
        self.connect_timeout = connect_timeout
        self.bytes_downloaded = 0
        self._session = session
        self._owned_session = session is None

    @property
    def session(self) -> aiohttp.ClientSession:
        """获取或创建 aiohttp session"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(
                    total=None,
                    sock_connect=self.connect_timeout,
                    sock_read=READ_TIMEOUT,
                )
            )
        return self._session

    def fallback_url(self, filename: str) -> str:
        """备用下载地址"""
        base = self.fallback_base_url
        if not base.endswith("/"):
            base += "/"
        return f"{base}{filename}"

    def candidate_urls(self, entry: ManifestEntry) -> List[str]:
        """主地址（如有）+ 备用地址，最多两个"""
        urls = []
        if entry.download_link:
            urls.append(entry.download_link)
        urls.append(self.fallback_url(entry.filename))
        return urls

    async def fetch(
        self,
        url: str,
        destination: str,
        on_progress: Optional[ByteProgressCallback] = None,
    ) -> bool:
        """
        单次下载尝试

        Returns:
            True 如果文件完整写入，False 如果网络失败（不完整的文件会被删除）

        Raises:
            FileIOError: 本地磁盘写入失败
        """
        dest_dir = os.path.dirname(destination)
        try:
            if dest_dir:
                os.makedirs(dest_dir, exist_ok=True)
            await self._download(url, destination, on_progress)
            return True
        except (aiohttp.ClientError, asyncio.TimeoutError, DownloadNetworkError) as e:
            logger.warning(f"[网络] 下载失败 {url}: {e}")
            self._remove_partial(destination)
            return False
        except OSError as e:
            self._remove_partial(destination)
            raise FileIOError(
                f"写入文件失败: {os.path.basename(destination)}",
                context={"path": destination, "error": str(e)},
            )

    async def _download(
        self,
        url: str,
        destination: str,
        on_progress: Optional[ByteProgressCallback],
    ) -> None:
        async with self.session.get(url) as response:
            if response.status != 200:
                raise DownloadNetworkError(
                    f"HTTP {response.status}",
                    context={"url": url, "status": response.status},
                )

            total_size = int(response.headers.get("Content-Length", 0))
            logger.info(f"[信息] 文件大小: {total_size / (1024 * 1024):.2f} MB")

            async with aiofiles.open(destination, "wb") as f:
                downloaded = 0
                last_reported = 0

                async for chunk in response.content.iter_chunked(CHUNK_SIZE):
                    await f.write(chunk)
                    downloaded += len(chunk)
                    self.bytes_downloaded += len(chunk)

                    if on_progress and downloaded - last_reported >= PROGRESS_INTERVAL:
                        on_progress(downloaded, total_size)
                        last_reported = downloaded

            if total_size and downloaded < total_size:
                raise DownloadNetworkError(
                    "连接提前关闭",
                    context={"url": url, "received": downloaded, "expected": total_size},
                )

            if on_progress:
                on_progress(downloaded, total_size or downloaded)

    async def fetch_entry(
        self,
        entry: ManifestEntry,
        destination: str,
        on_progress: Optional[ByteProgressCallback] = None,
        verify: Optional[Verifier] = None,
        on_attempt: Optional[Callable[[str], None]] = None,
    ) -> bool:
        """
        下载清单条目：主地址失败后重试一次备用地址

        Args:
            entry: 清单条目
            destination: 本地保存路径
            on_progress: 字节进度回调 (已接收, 总大小)
            verify: 可选的下载后校验，返回 False 视为该次尝试失败
            on_attempt: 每次尝试开始前以 URL 调用

        Returns:
            True 如果任一地址下载成功
        """
        urls = self.candidate_urls(entry)

        for attempt, url in enumerate(urls):
            if attempt > 0:
                logger.warning(f"[重试] '{entry.filename}' 使用备用地址: {url}")
            else:
                logger.info(f"[开始] 下载: {entry.filename} {url}")

            if on_attempt:
                on_attempt(url)

            if not await self.fetch(url, destination, on_progress):
                continue

            if verify is not None and not await verify(destination):
                error = IntegrityError(
                    f"校验失败: {entry.filename}",
                    context={"file": entry.filename, "expected": entry.checksum, "url": url},
                )
                logger.warning(f"[校验] {error}")
                self._remove_partial(destination)
                continue

            logger.success(f"[完成] '{entry.filename}' 下载完成")
            return True

        logger.error(f"[错误] 下载 '{entry.filename}' 最终失败")
        return False

    @staticmethod
    def _remove_partial(file_path: str) -> None:
        """清理不完整的文件"""
        if os.path.exists(file_path):
            try:
                os.remove(file_path)
            except OSError as e:
                logger.warning(f"[清理] 无法删除不完整的文件 {file_path}: {e}")

    async def close(self):
        """关闭传输层"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()
