"""
PatchSync - 增量补丁同步引擎

根据服务器补丁清单，只下载缺失或过期的文件，并在中断后安全恢复。
"""

from patchsync.listener import PatchListener
from patchsync.models import ManifestEntry, PatchConfig, PatchState, load_config
from patchsync.session import PatchSession

__version__ = "0.1.0"

__all__ = [
    "PatchSession",
    "PatchListener",
    "PatchConfig",
    "PatchState",
    "ManifestEntry",
    "load_config",
    "__version__",
]
