"""
PatchSync 服务层

包含补丁清单获取与解析。
"""

from patchsync.services.manifest import ManifestFetcher, parse_manifest, parse_line

__all__ = [
    "ManifestFetcher",
    "parse_manifest",
    "parse_line",
]
