"""
PatchSync 下载层

包含传输、工作队列、文件校验、恢复标记与进度计算。
"""

from patchsync.download.transport import Transport
from patchsync.download.queue import WorkQueue
from patchsync.download.hasher import HashEngine
from patchsync.download.recovery import RecoveryLog
from patchsync.download.progress import ProgressTracker, TransferProgress

__all__ = [
    "Transport",
    "WorkQueue",
    "HashEngine",
    "RecoveryLog",
    "ProgressTracker",
    "TransferProgress",
]
