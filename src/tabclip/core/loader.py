import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from .command import CopyCommand, OPTION_NAMES
from .exceptions import ConfigError
from .format_engine import DEFAULT_FORMAT
from .host.host_adapter import HostQuirks
from .log_config import LogConfig
from .log_util import AutoLoggerMixin
from .surface import DEFAULT_SURFACE_PATH
from .resolver import DEFAULT_CONTROL_PATHS

CONFIG_FILENAME = "tabclip.yml"

NEWLINE_MODES = ("default", "CRLF", "CR", "LF")


@dataclass
class DefaultPreferences:
    """
    默认设置。命令没有自带（extended=False）时由这里提供 newline / separator / options。
    """
    newline: str = "default"
    separator: str = ""
    format: str = DEFAULT_FORMAT
    options: Dict[str, bool] = field(default_factory=dict)

    def resolve_newline(self, cmd: CopyCommand) -> str:
        return cmd.newline if cmd.extended else self.newline

    def resolve_separator(self, cmd: CopyCommand) -> str:
        return cmd.separator if cmd.extended else self.separator

    def resolve_options(self, cmd: CopyCommand) -> Dict[str, bool]:
        """默认选项上叠加命令自己的选项（仅 extended 命令）"""
        merged = {name: bool(self.options.get(name, False)) for name in OPTION_NAMES}
        merged.update({k: v for k, v in self.options.items() if k not in merged})
        if cmd.extended:
            merged.update({k: bool(v) for k, v in cmd.options.items()})
        return merged


@dataclass
class HostSettings:
    profile_path: Optional[str] = None
    headless: bool = False
    base_url: str = "about:blank#tabclip"
    surface_path: str = DEFAULT_SURFACE_PATH
    control_paths: List[str] = field(default_factory=lambda: list(DEFAULT_CONTROL_PATHS))
    quirks: HostQuirks = field(default_factory=HostQuirks)


@dataclass
class TabClipConfig:
    preferences: DefaultPreferences = field(default_factory=DefaultPreferences)
    host: HostSettings = field(default_factory=HostSettings)
    logging: LogConfig = field(default_factory=LogConfig)


class ConfigLoader(AutoLoggerMixin):
    """
    从 profile 目录加载配置：

    <profile>/.env          环境变量（可选）
    <profile>/tabclip.yml   preferences / host / logging 三个部分（可选，缺失时用默认值）

    环境变量覆盖：TABCLIP_LOG_DIR, TABCLIP_BROWSER_PROFILE, TABCLIP_HEADLESS
    """

    def __init__(self, profile_path: str = "."):
        self.profile_path = profile_path
        env_file = os.path.join(profile_path, ".env")
        if os.path.exists(env_file) and os.access(env_file, os.R_OK):
            load_dotenv(env_file)

    def _parse_value(self, value):
        """YAML 之外再兜底一次 'true' / 'false' / 'null' 字符串"""
        if isinstance(value, str):
            value_lower = value.lower()
            if value_lower == 'null':
                return None
            elif value_lower in ('true', '1', 'yes'):
                return True
            elif value_lower in ('false', '0', 'no'):
                return False
        return value

    def _section(self, raw: Dict[str, Any], name: str) -> Dict[str, Any]:
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"'{name}' 必须是一个映射，实际是 {type(section).__name__}")
        return section

    def load(self, file_path: Optional[str] = None) -> TabClipConfig:
        file_path = file_path or os.path.join(self.profile_path, CONFIG_FILENAME)
        raw: Dict[str, Any] = {}
        if os.path.exists(file_path):
            self.logger.info(f">>> 加载配置文件 {file_path}...")
            with open(file_path, 'r', encoding='utf-8') as f:
                raw = yaml.safe_load(f) or {}
            if not isinstance(raw, dict):
                raise ConfigError(f"配置文件顶层必须是映射: {file_path}")

        config = TabClipConfig(
            preferences=self._load_preferences(self._section(raw, "preferences")),
            host=self._load_host(self._section(raw, "host")),
            logging=LogConfig.from_dict(self._section(raw, "logging") or None),
        )

        log_dir = os.getenv("TABCLIP_LOG_DIR")
        if log_dir:
            config.logging.log_dir = log_dir
        browser_profile = os.getenv("TABCLIP_BROWSER_PROFILE")
        if browser_profile:
            config.host.profile_path = browser_profile
        headless = os.getenv("TABCLIP_HEADLESS")
        if headless is not None:
            config.host.headless = bool(self._parse_value(headless))

        return config

    def _load_preferences(self, data: Dict[str, Any]) -> DefaultPreferences:
        newline = data.get("newline", "default")
        if newline not in NEWLINE_MODES:
            raise ConfigError(f"未知的 newline: {newline!r}，可选 {NEWLINE_MODES}")

        options = data.get("options") or {}
        if not isinstance(options, dict):
            raise ConfigError("'preferences.options' 必须是一个映射")

        return DefaultPreferences(
            newline=newline,
            separator=str(data.get("separator", "") or ""),
            format=data.get("format") or DEFAULT_FORMAT,
            options={name: bool(self._parse_value(value)) for name, value in options.items()},
        )

    def _load_host(self, data: Dict[str, Any]) -> HostSettings:
        quirks = data.get("quirks") or {}
        if not isinstance(quirks, dict):
            raise ConfigError("'host.quirks' 必须是一个映射")

        settings = HostSettings(
            profile_path=data.get("profile_path"),
            headless=bool(self._parse_value(data.get("headless", False))),
            base_url=data.get("base_url", HostSettings.base_url),
            surface_path=data.get("surface_path", DEFAULT_SURFACE_PATH),
            quirks=HostQuirks.from_dict({k: self._parse_value(v) for k, v in quirks.items()}),
        )
        if "control_paths" in data:
            settings.control_paths = list(data["control_paths"] or [])
        return settings
