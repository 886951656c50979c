"""
PatchSync 统一异常体系

提供分层的异常结构，支持错误代码、上下文信息和 JSON 序列化。
"""

from typing import Any, Dict, Optional


class PatchSyncError(Exception):
    """PatchSync 基础异常类"""

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code or self._get_default_code()
        self.context = context or {}

    def _get_default_code(self) -> str:
        """获取默认错误代码"""
        return "E000"

    def to_dict(self) -> Dict[str, Any]:
        """将异常转换为字典格式"""
        return {
            "error": True,
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "type": self.__class__.__name__,
        }

    def __str__(self) -> str:
        if self.code:
            return f"[{self.code}] {self.message}"
        return self.message


class ConfigError(PatchSyncError):
    """配置相关错误"""

    def _get_default_code(self) -> str:
        return "E100"


class ConfigParseError(ConfigError):
    """配置解析错误"""

    def _get_default_code(self) -> str:
        return "E101"


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def _get_default_code(self) -> str:
        return "E102"


class NetworkError(PatchSyncError):
    """网络相关错误（可通过备用地址重试，不会导致进程退出）"""

    def _get_default_code(self) -> str:
        return "E200"


class ManifestNetworkError(NetworkError):
    """补丁清单无法获取"""

    def _get_default_code(self) -> str:
        return "E201"


class DownloadNetworkError(NetworkError):
    """补丁文件下载失败"""

    def _get_default_code(self) -> str:
        return "E202"


class IntegrityError(PatchSyncError):
    """校验值不匹配"""

    def _get_default_code(self) -> str:
        return "E300"


class FileIOError(PatchSyncError):
    """磁盘读写错误"""

    def _get_default_code(self) -> str:
        return "E400"


class ManifestParseError(PatchSyncError):
    """补丁清单行格式错误"""

    def _get_default_code(self) -> str:
        return "E500"


class SessionBusyError(PatchSyncError):
    """已有补丁会话正在运行"""

    def _get_default_code(self) -> str:
        return "E600"


__all__ = [
    # 基础异常
    "PatchSyncError",
    # 配置异常
    "ConfigError",
    "ConfigParseError",
    "ConfigValidationError",
    # 网络异常
    "NetworkError",
    "ManifestNetworkError",
    "DownloadNetworkError",
    # 校验与磁盘异常
    "IntegrityError",
    "FileIOError",
    # 清单异常
    "ManifestParseError",
    # 会话异常
    "SessionBusyError",
]
