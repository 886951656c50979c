"""
补丁会话

驱动整个补丁流程的状态机：获取清单 -> 逐个检查/下载文件 -> 结束或出错。
同一时间只允许运行一个会话，条目严格按清单顺序逐个处理。
"""

import asyncio
import os
from typing import Optional

from loguru import logger

from patchsync.cache import ChecksumCache
from patchsync.download import (
    HashEngine,
    ProgressTracker,
    RecoveryLog,
    Transport,
    WorkQueue,
)
from patchsync.download.progress import overall_percent
from patchsync.exceptions import (
    FileIOError,
    NetworkError,
    PatchSyncError,
    SessionBusyError,
)
from patchsync.listener import PatchListener
from patchsync.logger import add_session_log, remove_session_log
from patchsync.models import ManifestEntry, PatchConfig, PatchState, SessionStats
from patchsync.services import ManifestFetcher

STATUS_FETCHING = "正在获取补丁清单..."
STATUS_MANIFEST_FAILED = "无法下载补丁清单！"
STATUS_ERRORED = "出现错误，请重新启动补丁程序。"


class PatchSession:
    """补丁会话"""

    def __init__(
        self,
        config: PatchConfig,
        listener: Optional[PatchListener] = None,
        fetcher: Optional[ManifestFetcher] = None,
        transport: Optional[Transport] = None,
        cache: Optional[ChecksumCache] = None,
        hasher: Optional[HashEngine] = None,
        recovery: Optional[RecoveryLog] = None,
        tracker: Optional[ProgressTracker] = None,
        session_log: bool = True,
    ):
        self.config = config
        self.listener = listener or PatchListener()
        self.fetcher = fetcher or ManifestFetcher(
            manifest_path=config.paths.manifest_path,
            connect_timeout=config.download.connect_timeout,
        )
        self.transport = transport or Transport(
            fallback_base_url=config.server.fallback_base_url,
            connect_timeout=config.download.connect_timeout,
        )
        self.cache = cache or ChecksumCache(config.paths.checksum_cache_path)
        self.hasher = hasher or HashEngine(
            progress_step=config.download.hash_progress_step
        )
        self.recovery = recovery or RecoveryLog(config.paths.marker_path)
        self.tracker = tracker or ProgressTracker()
        self.queue = WorkQueue()
        self.state = PatchState.IDLE
        self.stats = SessionStats()

        self._session_log = session_log
        self._running = False
        self._previous_marker: Optional[str] = None

    @property
    def current_index(self) -> int:
        return self.queue.current_index

    @property
    def patching(self) -> bool:
        """是否正在处理工作队列"""
        return self.queue.current_index != -1

    @property
    def running(self) -> bool:
        """会话是否在运行（包括获取清单阶段）"""
        return self._running

    @property
    def can_shutdown(self) -> bool:
        """宿主程序关闭前应检查；为 False 时需先向用户确认"""
        return not self.patching

    @property
    def launch_allowed(self) -> bool:
        """补丁完成后才允许启动受保护的程序"""
        return self.state == PatchState.FINISHED and not self._running

    async def start(self) -> bool:
        """
        开始补丁会话

        Returns:
            False 如果已有会话在运行（请求被拒绝），否则在会话结束后返回 True
        """
        if self._running:
            logger.warning("[会话] 补丁会话正在运行，忽略新的启动请求")
            return False

        self._running = True
        log_handler = add_session_log(self.config.paths.log_file) if self._session_log else None
        try:
            await self._run()
        except asyncio.CancelledError:
            # 保留恢复标记，下次会话据此清理未完成的文件
            logger.warning("[中断] 补丁会话被取消")
            was_patching = self.patching
            self.queue.clear()
            self.state = PatchState.IDLE
            if was_patching:
                self.listener.on_patching_state_changed(False)
            raise
        except PatchSyncError as e:
            logger.error(f"[错误] {e}")
            self._fail(str(e))
        except Exception as e:
            logger.exception(f"[错误] 补丁会话异常: {e}")
            self._fail(str(e))
        finally:
            self._running = False
            await self.fetcher.close()
            await self.transport.close()
            remove_session_log(log_handler)

        return True

    def clear_cache(self) -> None:
        """清除校验值缓存（由宿主程序显式请求）"""
        if self._running:
            raise SessionBusyError("补丁会话运行中，无法清除缓存")
        self.cache.clear()

    async def _run(self) -> None:
        self.stats = SessionStats()
        self.queue.clear()
        self._set_state(PatchState.FETCHING_MANIFEST)
        self.listener.on_progress_percent(0)
        self.listener.on_status_text(STATUS_FETCHING)

        # 读取上次会话遗留的恢复标记，并清理临时文件
        self._previous_marker = self.recovery.read()
        if self._previous_marker:
            logger.info(f"[恢复] 上次会话未完成的文件: {self._previous_marker}")
        self.recovery.clear()
        self.fetcher.remove_stale()
        await self.cache.load()

        try:
            entries = await self.fetcher.fetch(self.config.server.manifest_url)
        except NetworkError as e:
            logger.error(f"[清单] {e}")
            self._finish(STATUS_MANIFEST_FAILED)
            return

        self.queue.extend(entries)
        self.stats.total = len(self.queue)
        if self.queue.empty():
            logger.info("[清单] 没有需要处理的补丁")
            self._finish()
            return

        os.makedirs(self.config.paths.data_dir, exist_ok=True)

        entry = self.queue.start()
        self.recovery.write(entry.filename)
        self._set_state(PatchState.PATCHING)
        self.listener.on_patching_state_changed(True)

        while entry is not None:
            if not await self._process_entry(entry):
                self._fail(f"下载失败: {entry.filename}")
                return

            entry = self.queue.advance()
            if entry is not None:
                self.recovery.write(entry.filename)

        logger.success(
            f"[完成] 补丁完成: {self.stats.downloaded} 下载, {self.stats.skipped} 跳过"
        )
        self._finish()

    async def _process_entry(self, entry: ManifestEntry) -> bool:
        """
        处理单个清单条目

        Returns:
            False 如果主地址与备用地址都下载失败
        """
        index = self.queue.current_index
        total = len(self.queue)
        file_path = os.path.join(self.config.paths.data_dir, entry.filename)

        logger.debug(f"[检查] {index + 1}/{total} {entry.filename} {entry.checksum}")
        self.listener.on_progress_percent(overall_percent(index, total))
        self.listener.on_status_text(f"正在检查补丁 {index + 1}/{total} {entry.filename}")
        self.stats.checked += 1

        # 上次会话中断时正在写入的文件不可信
        if self._previous_marker == entry.filename:
            self.recovery.discard_incomplete(self.config.paths.data_dir, entry.filename)
            self.cache.discard(entry.filename)
            self._previous_marker = None

        if os.path.exists(file_path):
            local_checksum = await self._resolve_checksum(entry, file_path)
            if entry.matches(local_checksum):
                logger.info(f"[跳过] '{entry.filename}' 校验通过")
                self.stats.skipped += 1
                return True
            logger.info(f"[过期] '{entry.filename}' 校验值不匹配，重新下载")

        return await self._download(entry, file_path)

    async def _resolve_checksum(
        self, entry: ManifestEntry, file_path: str
    ) -> Optional[str]:
        """优先使用缓存中的校验值，否则重新计算并保存"""
        cached = self.cache.get(entry.filename)
        if cached:
            logger.debug(f"[缓存] 命中: {entry.filename}")
            return cached

        logger.debug(f"[缓存] 未命中: {entry.filename}")

        def on_hash_progress(percent: int) -> None:
            self.listener.on_status_text(f"正在校验 {entry.filename} {percent}%")

        try:
            checksum = await self.hasher.hash(file_path, on_hash_progress)
        except FileIOError as e:
            logger.warning(f"[校验] {e}")
            if self.recovery.read() == entry.filename:
                self.recovery.clear()
            return None

        logger.debug(f"[校验] {entry.filename} = {checksum}")
        self.cache.put(entry.filename, checksum)
        await self.cache.save()
        return checksum

    async def _download(self, entry: ManifestEntry, file_path: str) -> bool:
        index = self.queue.current_index
        total = len(self.queue)

        self.recovery.write(entry.filename)
        # 文件即将被覆盖，旧的校验值不再可信
        if entry.filename in self.cache:
            self.cache.discard(entry.filename)
            await self.cache.save()

        def on_attempt(url: str) -> None:
            self.tracker.reset(entry.filename, index, total)

        def on_progress(received: int, total_bytes: int) -> None:
            progress = self.tracker.update(received, total_bytes)
            self.listener.on_progress_percent(progress.percent)
            self.listener.on_status_text(progress.format_status())

        bytes_before = self.transport.bytes_downloaded
        verify = self._verify_download(entry) if self.config.download.verify_downloads else None

        ok = await self.transport.fetch_entry(
            entry,
            file_path,
            on_progress=on_progress,
            verify=verify,
            on_attempt=on_attempt,
        )
        self.stats.bytes_downloaded += self.transport.bytes_downloaded - bytes_before

        if not ok:
            self.stats.failed += 1
            return False

        # 传输层只在完整下载后返回成功，直接信任清单中的校验值
        self.cache.put(entry.filename, entry.checksum)
        await self.cache.save()
        self.stats.downloaded += 1
        return True

    def _verify_download(self, entry: ManifestEntry):
        async def verify(path: str) -> bool:
            return await self.hasher.verify(path, entry.checksum)

        return verify

    def _set_state(self, state: PatchState) -> None:
        logger.debug(f"[状态] {self.state.value} -> {state.value}")
        self.state = state

    def _reset(self) -> None:
        """结束会话：清空队列，删除恢复标记与临时清单"""
        was_patching = self.patching
        self.queue.clear()
        self._previous_marker = None

        try:
            self.recovery.clear()
            self.fetcher.remove_stale()
        except FileIOError as e:
            logger.error(f"[清理] {e}")

        if was_patching:
            self.listener.on_patching_state_changed(False)
        logger.debug("[清理] 完成")

    def _finish(self, status: str = "") -> None:
        self._reset()
        self._set_state(PatchState.FINISHED)
        self.listener.on_progress_percent(100)
        self.listener.on_status_text(status)
        self.listener.on_finished()

    def _fail(self, message: str) -> None:
        self._reset()
        self._set_state(PatchState.ERRORED)
        self.listener.on_status_text(STATUS_ERRORED)
        self.listener.on_error(message)
