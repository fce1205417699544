"""
SlimDL 数据模型包
"""

from slimdl.models.config import (
    DownloadEntry,
    SlimDLConfig,
    load_config,
    parse_priority,
)

__all__ = [
    "DownloadEntry",
    "SlimDLConfig",
    "load_config",
    "parse_priority",
]
