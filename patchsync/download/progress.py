"""
下载进度计算

由传输层上报 (已接收字节, 总字节)，在此计算百分比、速度、剩余量与预计时间。
速度依赖单次下载的起始时间，因此每次下载尝试都要调用 reset。
"""

import time
from dataclasses import dataclass
from typing import Callable, Optional

from patchsync.utils import format_eta, map_range, to_mb


@dataclass
class TransferProgress:
    """单个文件的下载进度快照"""

    filename: str
    index: int
    total_files: int
    bytes_received: int
    total_bytes: int
    percent: int
    speed_mb_s: float
    remaining_mb: float
    eta_seconds: Optional[float]

    def format_status(self) -> str:
        """生成状态栏文本"""
        return (
            f"{self.percent}% (Patch {self.index + 1}/{self.total_files} {self.filename}, "
            f"downloaded {to_mb(self.bytes_received):.1f}/{to_mb(self.total_bytes):.1f} MB "
            f"at {self.speed_mb_s:.1f} MB/s, {format_eta(self.eta_seconds)} left)"
        )


class ProgressTracker:
    """单次下载的进度跟踪"""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._started_at: Optional[float] = None
        self.filename = ""
        self.index = 0
        self.total_files = 0

    def reset(self, filename: str, index: int, total_files: int) -> None:
        """开始新的下载尝试"""
        self.filename = filename
        self.index = index
        self.total_files = total_files
        self._started_at = self._clock()

    def update(self, bytes_received: int, total_bytes: int) -> TransferProgress:
        """根据传输层上报的字节数计算进度"""
        if self._started_at is None:
            self._started_at = self._clock()

        elapsed = self._clock() - self._started_at

        if total_bytes > 0:
            percent = min(100, bytes_received * 100 // total_bytes)
            remaining_mb = max(0.0, to_mb(total_bytes - bytes_received))
        else:
            # 服务器未返回 Content-Length
            percent = 0
            remaining_mb = 0.0

        speed = to_mb(bytes_received) / elapsed if elapsed > 0 else 0.0

        eta: Optional[float]
        if total_bytes <= 0:
            eta = None
        elif remaining_mb == 0:
            eta = 0.0
        elif speed > 0:
            eta = remaining_mb / speed
        else:
            eta = None

        return TransferProgress(
            filename=self.filename,
            index=self.index,
            total_files=self.total_files,
            bytes_received=bytes_received,
            total_bytes=total_bytes,
            percent=percent,
            speed_mb_s=speed,
            remaining_mb=remaining_mb,
            eta_seconds=eta,
        )


def overall_percent(index: int, total_files: int) -> int:
    """整个工作队列的进度百分比"""
    return int(map_range(index, 0, total_files, 0, 100))
