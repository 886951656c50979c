"""
校验值缓存

持久化 文件名 -> 校验值 映射，避免重复计算已校验过的文件。
每次保存都会重新读取磁盘内容并合并（内存优先），整体重写而非追加。
"""

import os
from typing import Dict, Optional, Set

import aiofiles
from loguru import logger

from patchsync.exceptions import FileIOError

# 2: SHA-256 校验值；无版本标记的旧缓存为 MD5 时代格式
CACHE_FORMAT_VERSION = 2


class ChecksumCache:
    """校验值缓存"""

    def __init__(self, path: str):
        self.path = path
        self.version_path = f"{path}.version"
        self._entries: Dict[str, str] = {}
        # 已作废的文件名，保存时从磁盘内容中一并删除
        self._discarded: Set[str] = set()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, filename: str) -> bool:
        return filename.lower() in self._entries

    def get(self, filename: str) -> Optional[str]:
        """获取缓存的校验值"""
        return self._entries.get(filename.lower())

    def put(self, filename: str, checksum: str) -> None:
        """写入校验值（覆盖已有值）"""
        key = filename.lower()
        self._entries[key] = checksum.upper()
        self._discarded.discard(key)

    def discard(self, filename: str) -> None:
        """作废某个文件的校验值（文件即将被覆盖或已删除）"""
        key = filename.lower()
        self._entries.pop(key, None)
        self._discarded.add(key)

    def items(self) -> Dict[str, str]:
        """获取内存中缓存的副本"""
        return dict(self._entries)

    @staticmethod
    def _parse(text: str) -> Dict[str, str]:
        """解析 ``filename,checksum`` 行，跳过格式错误的行"""
        entries: Dict[str, str] = {}
        for line in text.splitlines():
            parts = line.strip().split(",")
            if len(parts) != 2:
                continue
            filename, checksum = parts[0].strip(), parts[1].strip()
            if not filename or not checksum:
                continue
            entries[filename.lower()] = checksum.upper()
        return entries

    async def _read_version(self) -> Optional[int]:
        """读取版本标记，缺失或无法解析时返回 None"""
        if not os.path.exists(self.version_path):
            return None
        try:
            async with aiofiles.open(self.version_path, "r", encoding="utf-8") as f:
                return int((await f.read()).strip())
        except (IOError, OSError, ValueError):
            return None

    async def _is_legacy(self) -> bool:
        """
        磁盘上的缓存是否为旧格式

        没有版本标记或标记为其他版本时视为旧格式；标记存在但无法解析时
        保留缓存，下次保存会重写标记。
        """
        if not os.path.exists(self.path):
            return False
        if not os.path.exists(self.version_path):
            return True

        version = await self._read_version()
        if version is None:
            logger.warning("[缓存] 版本标记无法读取，保留现有缓存")
            return False
        return version != CACHE_FORMAT_VERSION

    async def _read_persisted(self) -> Dict[str, str]:
        """读取磁盘上的缓存，版本不符时视为空"""
        if not os.path.exists(self.path):
            return {}

        if await self._is_legacy():
            return {}

        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                return self._parse(await f.read())
        except (IOError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"[缓存] 读取缓存失败: {e}")
            return {}

    async def load(self) -> int:
        """
        从磁盘加载缓存

        Returns:
            加载的条目数
        """
        if await self._is_legacy():
            logger.warning("[缓存] 发现旧版本校验值缓存，已丢弃")
            self._remove_files()
            self._entries = {}
            return 0

        persisted = await self._read_persisted()
        for key in self._discarded:
            persisted.pop(key, None)
        # 内存中的条目优先
        persisted.update(self._entries)
        self._entries = persisted
        logger.debug(f"[缓存] 已加载 {len(self._entries)} 条校验值")
        return len(self._entries)

    async def save(self) -> None:
        """重新读取磁盘缓存，合并后整体写回"""
        merged = await self._read_persisted()
        for key in self._discarded:
            merged.pop(key, None)
        merged.update(self._entries)
        self._entries = merged

        cache_dir = os.path.dirname(self.path)
        tmp_path = f"{self.path}.tmp"
        try:
            if cache_dir:
                os.makedirs(cache_dir, exist_ok=True)
            # 版本标记必须先于缓存文件落盘
            if await self._read_version() != CACHE_FORMAT_VERSION:
                await self._write_version()

            async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
                for filename, checksum in merged.items():
                    await f.write(f"{filename},{checksum}\n")
            os.replace(tmp_path, self.path)
        except (IOError, OSError) as e:
            raise FileIOError(
                f"保存校验值缓存失败: {e}", context={"path": self.path}
            )

        logger.debug(f"[缓存] 已保存 {len(merged)} 条校验值")

    async def _write_version(self) -> None:
        tmp_path = f"{self.version_path}.tmp"
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(f"{CACHE_FORMAT_VERSION}\n")
        os.replace(tmp_path, self.version_path)

    def clear(self) -> None:
        """删除磁盘上的缓存并清空内存"""
        self._entries = {}
        self._discarded = set()
        self._remove_files()
        logger.info("[缓存] 校验值缓存已清除")

    def _remove_files(self) -> None:
        for path in (
            self.path,
            self.version_path,
            f"{self.path}.tmp",
            f"{self.version_path}.tmp",
        ):
            if os.path.exists(path):
                try:
                    os.remove(path)
                except OSError as e:
                    raise FileIOError(
                        f"删除缓存文件失败: {e}", context={"path": path}
                    )
