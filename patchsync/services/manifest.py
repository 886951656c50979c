"""
补丁清单获取

下载服务器上的补丁清单（每行: 文件名 校验值 下载链接），解析为有序条目。
"""

import asyncio
import os
import re
from typing import List, Optional

import aiofiles
import aiohttp
from loguru import logger

from patchsync.exceptions import FileIOError, ManifestNetworkError, ManifestParseError
from patchsync.models import ManifestEntry
from patchsync.utils import is_safe_filename

_HEX_RE = re.compile(r"^[0-9a-fA-F]+$")

# 清单生成工具为没有链接的文件写入 "null"
NULL_LINK = "null"

READ_TIMEOUT = 60.0


def parse_line(line: str, line_no: int = 0) -> Optional[ManifestEntry]:
    """
    解析单行清单

    Returns:
        清单条目；空行返回 None

    Raises:
        ManifestParseError: 无法解码、字段不足、文件名越出数据目录或校验值格式错误
    """
    fields = line.split()
    if not fields:
        return None

    if "\ufffd" in line:
        raise ManifestParseError(
            f"第 {line_no} 行包含无法解码的字节",
            context={"line": line_no, "text": line},
        )

    if len(fields) < 3:
        raise ManifestParseError(
            f"第 {line_no} 行字段不足 ({len(fields)}/3)",
            context={"line": line_no, "text": line},
        )

    filename, checksum, link = fields[0], fields[1], fields[2]
    if not is_safe_filename(filename):
        raise ManifestParseError(
            f"第 {line_no} 行文件名不合法: {filename}",
            context={"line": line_no, "text": line},
        )

    if not _HEX_RE.match(checksum):
        raise ManifestParseError(
            f"第 {line_no} 行校验值不是十六进制: {checksum}",
            context={"line": line_no, "text": line},
        )

    return ManifestEntry(
        filename=filename.lower(),
        checksum=checksum.upper(),
        download_link=None if link.lower() == NULL_LINK else link,
    )


def parse_manifest(text: str) -> List[ManifestEntry]:
    """
    解析清单文本

    格式错误的行会被跳过并记录警告，不会中断后续行的解析。
    重复的文件名只保留第一次出现。
    """
    entries: List[ManifestEntry] = []
    seen: set[str] = set()

    for line_no, line in enumerate(text.splitlines(), start=1):
        try:
            entry = parse_line(line, line_no)
        except ManifestParseError as e:
            logger.warning(f"[清单] 跳过格式错误的行: {e}")
            continue

        if entry is None:
            continue

        if entry.filename in seen:
            logger.warning(f"[清单] 第 {line_no} 行文件名重复，已忽略: {entry.filename}")
            continue

        seen.add(entry.filename)
        entries.append(entry)

    return entries


class ManifestFetcher:
    """补丁清单获取器"""

    def __init__(
        self,
        manifest_path: Optional[str] = None,
        connect_timeout: float = 10.0,
        read_timeout: float = READ_TIMEOUT,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        self.manifest_path = manifest_path
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
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
                    sock_read=self.read_timeout,
                )
            )
        return self._session

    async def _request(self, uri: str) -> str:
        """下载清单文本"""
        try:
            async with self.session.get(uri) as response:
                if response.status != 200:
                    raise ManifestNetworkError(
                        f"清单请求失败 (状态码: {response.status})",
                        context={"url": uri, "status": response.status},
                    )
                # 无法解码的字节替换后由 parse_line 丢弃该行
                body = await response.read()
                return body.decode("utf-8-sig", errors="replace")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ManifestNetworkError(
                f"无法下载补丁清单: {e}", context={"url": uri}
            )

    async def _store(self, text: str) -> None:
        """保存临时清单文件"""
        if not self.manifest_path:
            return
        manifest_dir = os.path.dirname(self.manifest_path)
        try:
            if manifest_dir:
                os.makedirs(manifest_dir, exist_ok=True)
            async with aiofiles.open(self.manifest_path, "w", encoding="utf-8") as f:
                await f.write(text)
        except (IOError, OSError) as e:
            raise FileIOError(
                f"保存补丁清单失败: {e}", context={"path": self.manifest_path}
            )

    async def fetch(self, uri: str) -> List[ManifestEntry]:
        """
        获取并解析补丁清单

        Raises:
            ManifestNetworkError: 清单无法获取
        """
        logger.info(f"[清单] 正在获取补丁清单: {uri}")
        text = await self._request(uri)
        await self._store(text)

        entries = parse_manifest(text)
        logger.info(f"[清单] 共 {len(entries)} 个补丁文件")
        return entries

    def remove_stale(self) -> None:
        """删除上次会话留下的临时清单"""
        if self.manifest_path and os.path.exists(self.manifest_path):
            try:
                os.remove(self.manifest_path)
            except OSError as e:
                raise FileIOError(
                    f"删除临时清单失败: {e}", context={"path": self.manifest_path}
                )

    async def close(self):
        """关闭获取器"""
        if self._owned_session and self._session and not self._session.closed:
            await self._session.close()

    async def __aenter__(self):
        """异步上下文管理器入口"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """异步上下文管理器出口"""
        await self.close()
