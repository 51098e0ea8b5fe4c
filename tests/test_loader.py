"""
测试配置加载（tabclip.yml + .env）
"""

import logging

import pytest

import sys
from pathlib import Path

# 添加 src 到 Python 路径
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tabclip.core.command import COPY_NO_TAB, EXCLUDE_PIN, CopyCommand
from tabclip.core.exceptions import ConfigError
from tabclip.core.format_engine import DEFAULT_FORMAT
from tabclip.core.loader import ConfigLoader, DefaultPreferences


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("TABCLIP_LOG_DIR", "TABCLIP_BROWSER_PROFILE", "TABCLIP_HEADLESS"):
        monkeypatch.delenv(name, raising=False)


def test_missing_file_gives_defaults(tmp_path):
    config = ConfigLoader(str(tmp_path)).load()
    assert config.preferences.newline == "default"
    assert config.preferences.format == DEFAULT_FORMAT
    assert config.host.surface_path == "/offscreen/offscreen.html"
    assert config.host.control_paths == ["/popup/popup.html"]
    assert config.host.quirks.requires_surface is True
    assert config.logging.level == logging.INFO


def test_full_profile(tmp_path):
    (tmp_path / "tabclip.yml").write_text(
        """
preferences:
  newline: CRLF
  separator: "----"
  format: "[{{ title }}]({{ url }})"
  options:
    exclude_pin: true
    copy_no_tab: "false"
host:
  profile_path: /tmp/chrome-profile
  headless: "true"
  quirks:
    ignores_query_filters: true
    exposes_hidden: true
logging:
  level: DEBUG
  prefix: "[{component}]"
""",
        encoding="utf-8",
    )
    config = ConfigLoader(str(tmp_path)).load()

    assert config.preferences.newline == "CRLF"
    assert config.preferences.separator == "----"
    assert config.preferences.format == "[{{ title }}]({{ url }})"
    assert config.preferences.options == {EXCLUDE_PIN: True, COPY_NO_TAB: False}
    assert config.host.profile_path == "/tmp/chrome-profile"
    assert config.host.headless is True
    assert config.host.quirks.ignores_query_filters is True
    assert config.host.quirks.exposes_hidden is True
    assert config.logging.level == logging.DEBUG
    assert config.logging.format_prefix(component="surface") == "[surface]"


def test_env_file_overrides(tmp_path, monkeypatch):
    (tmp_path / ".env").write_text(
        "TABCLIP_BROWSER_PROFILE=/profiles/work\nTABCLIP_HEADLESS=yes\n", encoding="utf-8"
    )
    monkeypatch.setenv("TABCLIP_LOG_DIR", str(tmp_path / "logs"))

    config = ConfigLoader(str(tmp_path)).load()
    assert config.host.profile_path == "/profiles/work"
    assert config.host.headless is True
    assert config.logging.log_dir == str(tmp_path / "logs")


def test_unknown_newline_rejected(tmp_path):
    (tmp_path / "tabclip.yml").write_text("preferences:\n  newline: NEL\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        ConfigLoader(str(tmp_path)).load()


def test_non_mapping_section_rejected(tmp_path):
    (tmp_path / "tabclip.yml").write_text("host: [1, 2]\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        ConfigLoader(str(tmp_path)).load()


def test_resolve_options_overlays_extended_command():
    prefs = DefaultPreferences(options={EXCLUDE_PIN: True})

    plain = prefs.resolve_options(CopyCommand(options={EXCLUDE_PIN: False, COPY_NO_TAB: True}))
    assert plain[EXCLUDE_PIN] is True
    assert plain[COPY_NO_TAB] is False

    extended = prefs.resolve_options(CopyCommand(extended=True, options={COPY_NO_TAB: True}))
    assert extended[EXCLUDE_PIN] is True
    assert extended[COPY_NO_TAB] is True
