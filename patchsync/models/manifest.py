"""
补丁清单与会话数据模型
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PatchState(Enum):
    """补丁会话状态"""

    IDLE = "idle"
    FETCHING_MANIFEST = "fetching_manifest"
    PATCHING = "patching"
    FINISHED = "finished"
    ERRORED = "errored"


@dataclass(frozen=True)
class ManifestEntry:
    """
    补丁清单中的一项。

    filename 已转为小写，作为缓存与本地文件的稳定键。
    download_link 为 None 时只使用备用地址。
    """

    filename: str
    checksum: str
    download_link: Optional[str] = None

    def matches(self, checksum: Optional[str]) -> bool:
        """十六进制校验值比较（忽略大小写）"""
        if not checksum:
            return False
        return self.checksum.upper() == checksum.upper()


@dataclass
class SessionStats:
    """补丁会话统计"""

    total: int = 0
    checked: int = 0
    skipped: int = 0
    downloaded: int = 0
    failed: int = 0
    bytes_downloaded: int = 0
