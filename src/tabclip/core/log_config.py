"""
日志配置类

统一管理 CopyService 及其下属组件（surface / resolver / channel）的日志行为
"""
import logging
from dataclasses import dataclass
from typing import Optional


@dataclass
class LogConfig:
    """日志配置类

    Attributes:
        enabled: 是否启用日志（默认 True）
        level: 日志级别（默认 INFO）
        prefix: 日志前缀模板，支持 {component} 等变量替换
        log_dir: 日志文件目录
    """
    enabled: bool = True
    level: int = logging.INFO
    prefix: str = ""
    log_dir: str = "./logs"

    @classmethod
    def from_dict(cls, config_dict: Optional[dict] = None) -> 'LogConfig':
        """从字典创建 LogConfig，None 返回默认配置"""
        if config_dict is None:
            return cls()

        return cls(
            enabled=config_dict.get("enabled", True),
            level=cls._parse_level(config_dict.get("level", "INFO")),
            prefix=config_dict.get("prefix", ""),
            log_dir=config_dict.get("log_dir", "./logs"),
        )

    @staticmethod
    def _parse_level(level_str) -> int:
        """解析日志级别，接受 "DEBUG" 之类的字符串或整数"""
        if isinstance(level_str, int):
            return level_str
        return getattr(logging, str(level_str).upper(), logging.INFO)

    def format_prefix(self, **kwargs) -> str:
        """格式化前缀

        Example:
            >>> config = LogConfig(prefix="[COPY-{component}]")
            >>> config.format_prefix(component="surface")
            '[COPY-surface]'
        """
        if not self.prefix:
            return ""
        return self.prefix.format(**kwargs)
