"""
恢复标记

记录正在下载的文件名。进程异常退出后，下次会话据此删除写了一半的文件。
"""

import os
from typing import Optional

from loguru import logger

from patchsync.exceptions import FileIOError
from patchsync.utils import is_safe_filename


class RecoveryLog:
    """单条恢复标记"""

    def __init__(self, path: str):
        self.path = path

    def exists(self) -> bool:
        return os.path.exists(self.path)

    def read(self) -> Optional[str]:
        """读取标记中的文件名，没有标记返回 None"""
        if not self.exists():
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                filename = f.read().strip()
        except (IOError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"[恢复] 无法读取恢复标记: {e}")
            return None
        if filename and not is_safe_filename(filename):
            logger.warning(f"[恢复] 忽略越出数据目录的恢复标记: {filename}")
            return None
        return filename.lower() or None

    def write(self, filename: str) -> None:
        """写入标记（覆盖旧标记）"""
        marker_dir = os.path.dirname(self.path)
        tmp_path = f"{self.path}.tmp"
        try:
            if marker_dir:
                os.makedirs(marker_dir, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(filename)
            os.replace(tmp_path, self.path)
        except (IOError, OSError) as e:
            raise FileIOError(
                f"写入恢复标记失败: {e}", context={"path": self.path}
            )

    def clear(self) -> None:
        """删除标记"""
        if not self.exists():
            return
        try:
            os.remove(self.path)
        except OSError as e:
            raise FileIOError(
                f"删除恢复标记失败: {e}", context={"path": self.path}
            )

    def discard_incomplete(self, data_dir: str, filename: Optional[str]) -> bool:
        """
        删除被标记的未完成文件

        Returns:
            True 如果删除了文件
        """
        if not filename or not is_safe_filename(filename):
            return False

        file_path = os.path.join(data_dir, filename)
        if not os.path.exists(file_path):
            return False

        try:
            os.remove(file_path)
        except OSError as e:
            raise FileIOError(
                f"删除未完成文件失败: {filename}",
                context={"path": file_path, "error": str(e)},
            )
        logger.info(f"[恢复] 已删除上次未完成的文件: {filename}")
        return True
