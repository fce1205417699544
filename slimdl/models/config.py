"""
配置模型

定义下载条目和运行配置，支持从 TOML / JSON / YAML 文件加载。
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import toml
import yaml

from slimdl.download.dispatcher import DEFAULT_POOL_SIZE
from slimdl.download.request import Priority
from slimdl.exceptions import ConfigError, ConfigParseError, ConfigValidationError


def parse_priority(value: Union[str, int, None]) -> int:
    """解析优先级，支持名称（high/normal...）或整数"""
    if value is None:
        return Priority.NORMAL.value
    if isinstance(value, bool):
        raise ConfigValidationError(f"无效的优先级: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        name = value.strip().upper()
        if name in Priority.__members__:
            return Priority[name].value
        try:
            return int(name)
        except ValueError:
            pass
    raise ConfigValidationError(
        f"无效的优先级: {value!r}",
        context={"allowed": [p.name.lower() for p in Priority]},
    )


@dataclass
class DownloadEntry:
    """单个下载条目"""

    url: str
    filename: Optional[str] = None
    priority: int = Priority.NORMAL.value
    sha1: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Union[str, Dict[str, Any]]) -> "DownloadEntry":
        if isinstance(data, str):
            data = {"url": data}
        if not isinstance(data, dict):
            raise ConfigValidationError(f"无效的下载条目: {data!r}")

        url = data.get("url")
        if not url or not isinstance(url, str):
            raise ConfigValidationError("下载条目缺少 url", context={"entry": data})

        return cls(
            url=url,
            filename=data.get("filename"),
            priority=parse_priority(data.get("priority")),
            sha1=data.get("sha1"),
        )


@dataclass
class SlimDLConfig:
    """运行配置"""

    pool_size: int = DEFAULT_POOL_SIZE
    download_dir: str = "downloads"
    chunk_size: int = 8192
    timeout: Optional[float] = None
    join_timeout: Optional[float] = 5.0
    downloads: List[DownloadEntry] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SlimDLConfig":
        """从字典创建配置并校验"""
        if not isinstance(data, dict):
            raise ConfigValidationError("配置必须是一个映射")

        settings = data.get("settings", {})
        if not isinstance(settings, dict):
            raise ConfigValidationError("settings 必须是一个映射")

        config = cls(
            pool_size=settings.get("pool_size", DEFAULT_POOL_SIZE),
            download_dir=settings.get("download_dir", "downloads"),
            chunk_size=settings.get("chunk_size", 8192),
            timeout=settings.get("timeout"),
            join_timeout=settings.get("join_timeout", 5.0),
            downloads=[DownloadEntry.from_dict(d) for d in data.get("downloads", [])],
        )
        config.validate()
        return config

    def validate(self) -> None:
        if (
            not isinstance(self.pool_size, int)
            or isinstance(self.pool_size, bool)
            or self.pool_size <= 0
        ):
            raise ConfigValidationError(
                "pool_size 必须是正整数", context={"pool_size": self.pool_size}
            )
        if not isinstance(self.chunk_size, int) or self.chunk_size <= 0:
            raise ConfigValidationError(
                "chunk_size 必须是正整数", context={"chunk_size": self.chunk_size}
            )
        for name in ("timeout", "join_timeout"):
            value = getattr(self, name)
            if value is not None and (not isinstance(value, (int, float)) or value <= 0):
                raise ConfigValidationError(
                    f"{name} 必须是正数", context={name: value}
                )


def load_config(config_path: str) -> SlimDLConfig:
    """加载配置文件"""
    path = Path(config_path)

    if not path.exists():
        raise ConfigError(f"配置文件不存在: {config_path}")

    suffix = path.suffix.lower()
    try:
        if suffix == ".toml":
            data = toml.load(config_path)
        elif suffix == ".json":
            data = json.loads(path.read_text(encoding="utf-8"))
        elif suffix in (".yaml", ".yml"):
            data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        else:
            raise ConfigError(f"不支持的配置文件格式: {suffix}")
    except (toml.TomlDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigParseError(
            f"配置文件解析失败: {e}", context={"path": config_path}
        ) from e

    return SlimDLConfig.from_dict(data)
