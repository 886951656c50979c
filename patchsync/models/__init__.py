"""
PatchSync 数据模型包

包含配置模型和补丁清单模型定义。
"""

from patchsync.models.config import (
    ServerConfig,
    PathConfig,
    DownloadConfig,
    PatchConfig,
    load_config,
)
from patchsync.models.manifest import (
    PatchState,
    ManifestEntry,
    SessionStats,
)

__all__ = [
    # 配置模型
    "ServerConfig",
    "PathConfig",
    "DownloadConfig",
    "PatchConfig",
    "load_config",
    # 清单模型
    "PatchState",
    "ManifestEntry",
    "SessionStats",
]
