"""
补丁工作队列

按清单顺序保存待处理条目，按文件名去重，记录当前处理位置。
"""

from typing import Iterable, List, Optional

from patchsync.models import ManifestEntry


class WorkQueue:
    """补丁工作队列"""

    def __init__(self):
        self._entries: List[ManifestEntry] = []
        self._keys: set[str] = set()  # 用于去重
        self.current_index = -1

    def __len__(self) -> int:
        return len(self._entries)

    def put(self, entry: ManifestEntry) -> bool:
        """
        添加条目到队列末尾

        Returns:
            True 如果是新条目，False 如果文件名重复
        """
        if entry.filename in self._keys:
            return False

        self._keys.add(entry.filename)
        self._entries.append(entry)
        return True

    def extend(self, entries: Iterable[ManifestEntry]) -> int:
        """批量添加，返回新增数量"""
        return sum(1 for entry in entries if self.put(entry))

    def start(self) -> Optional[ManifestEntry]:
        """定位到第一个条目"""
        if not self._entries:
            self.current_index = -1
            return None
        self.current_index = 0
        return self._entries[0]

    def advance(self) -> Optional[ManifestEntry]:
        """
        前进到下一个条目

        Returns:
            下一个条目，队列耗尽时返回 None
        """
        if self.current_index == -1:
            return None
        self.current_index += 1
        if self.current_index >= len(self._entries):
            return None
        return self._entries[self.current_index]

    def empty(self) -> bool:
        """检查队列是否为空"""
        return not self._entries

    def clear(self):
        """清空队列"""
        self._entries.clear()
        self._keys.clear()
        self.current_index = -1
