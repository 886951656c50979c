"""
配置模型

定义补丁服务器、本地路径与下载参数的配置数据类。
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict

import toml
import yaml

from patchsync.exceptions import ConfigParseError, ConfigValidationError


@dataclass
class ServerConfig:
    """补丁服务器配置"""

    manifest_url: str
    fallback_base_url: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerConfig":
        missing = [
            key for key in ("manifest_url", "fallback_base_url") if not data.get(key)
        ]
        if missing:
            raise ConfigValidationError(
                f"缺少服务器配置项: {', '.join(missing)}",
                context={"missing": missing},
            )

        base_url = str(data["fallback_base_url"])
        # 备用地址总是以 "/" 结尾，文件名直接拼接
        if not base_url.endswith("/"):
            base_url += "/"

        return cls(manifest_url=str(data["manifest_url"]), fallback_base_url=base_url)


@dataclass
class PathConfig:
    """本地路径配置"""

    data_dir: str = "Data"
    cache_dir: str = "Cache"
    log_file: str = "Logs/patchsync.log"

    @property
    def manifest_path(self) -> str:
        """临时补丁清单文件"""
        return os.path.join(self.cache_dir, "L", "plist.txt")

    @property
    def marker_path(self) -> str:
        """恢复标记文件"""
        return os.path.join(self.cache_dir, "L", "patching")

    @property
    def checksum_cache_path(self) -> str:
        """校验值缓存文件"""
        return os.path.join(self.cache_dir, "Hash", "cache.txt")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PathConfig":
        defaults = cls()
        return cls(
            data_dir=str(data.get("data_dir", defaults.data_dir)),
            cache_dir=str(data.get("cache_dir", defaults.cache_dir)),
            log_file=str(data.get("log_file", defaults.log_file)),
        )


@dataclass
class DownloadConfig:
    """下载参数配置"""

    connect_timeout: float = 10.0
    hash_progress_step: int = 1024 * 1024
    verify_downloads: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DownloadConfig":
        defaults = cls()
        try:
            connect_timeout = float(data.get("connect_timeout", defaults.connect_timeout))
            hash_progress_step = int(
                data.get("hash_progress_step", defaults.hash_progress_step)
            )
        except (TypeError, ValueError) as e:
            raise ConfigValidationError(
                f"下载配置类型错误: {e}", context={"download": data}
            )

        if connect_timeout <= 0:
            raise ConfigValidationError("connect_timeout 必须大于 0")
        if hash_progress_step <= 0:
            raise ConfigValidationError("hash_progress_step 必须大于 0")

        verify_downloads = data.get("verify_downloads", defaults.verify_downloads)
        if not isinstance(verify_downloads, bool):
            raise ConfigValidationError("verify_downloads 必须为布尔值")

        return cls(
            connect_timeout=connect_timeout,
            hash_progress_step=hash_progress_step,
            verify_downloads=verify_downloads,
        )


@dataclass
class PatchConfig:
    """
    PatchSync 总配置

    由调用方创建一次，通过构造函数传入各组件。
    """

    server: ServerConfig
    paths: PathConfig = field(default_factory=PathConfig)
    download: DownloadConfig = field(default_factory=DownloadConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PatchConfig":
        """从字典创建配置"""
        if not isinstance(data, dict):
            raise ConfigValidationError("配置根节点必须为表/字典")

        server = data.get("server")
        if not isinstance(server, dict):
            raise ConfigValidationError("请配置 [server] 段")

        return cls(
            server=ServerConfig.from_dict(server),
            paths=PathConfig.from_dict(data.get("paths") or {}),
            download=DownloadConfig.from_dict(data.get("download") or {}),
        )


def load_config(config_path: str) -> PatchConfig:
    """加载配置文件（支持 toml / json / yaml）"""
    path = Path(config_path)

    if not path.exists():
        raise ConfigParseError(
            f"配置文件不存在: {config_path}", context={"path": config_path}
        )

    suffix = path.suffix.lower()

    try:
        if suffix == ".toml":
            data = toml.load(config_path)
        elif suffix == ".json":
            data = json.loads(path.read_text(encoding="utf-8"))
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
        else:
            raise ConfigParseError(
                f"不支持的配置文件格式: {suffix}", context={"path": config_path}
            )
    except (toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(
            f"配置文件解析失败: {e}", context={"path": config_path}
        )

    return PatchConfig.from_dict(data)
