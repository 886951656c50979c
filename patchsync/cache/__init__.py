"""
PatchSync 缓存层
"""

from patchsync.cache.checksum_cache import ChecksumCache, CACHE_FORMAT_VERSION

__all__ = [
    "ChecksumCache",
    "CACHE_FORMAT_VERSION",
]
