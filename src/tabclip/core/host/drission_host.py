"""
基于 DrissionPage 库的 HostAdapter 实现类。

通过 CDP 连接一个 Chromium：
- 标签页查询：get_tabs() + Browser.getWindowForTarget 取 windowId，过滤在这一侧完成
- 共享 surface：一个打开在固定 URL 上的专用标签页，剪贴板写入由挂在 MessageChannel 上的 ClipboardWriter 完成
- 内容提取：run_js 读取页面选区
"""

import asyncio
import json
import os
import platform
from typing import Any, Dict, List, Optional, Sequence

from DrissionPage import ChromiumOptions, ChromiumPage

from .clipboard_writer import ClipboardWriter
from .host_adapter import HostAdapter, HostQuirks, PlatformInfo, TabInfo
from ..exceptions import (
    ScriptExecutionError,
    SurfaceCloseError,
    SurfaceCreateError,
    TabQueryError,
)
from ..log_util import AutoLoggerMixin

# platform.system() -> chrome.runtime.PlatformOs
PLATFORM_OS = {
    "Windows": "win",
    "Darwin": "mac",
    "Linux": "linux",
}

EXTRACT_SELECTION_JS = """
return JSON.stringify({
    pageSelectionText: window.getSelection ? window.getSelection().toString() : '',
    pageTitle: document.title,
    pageUrl: location.href
});
"""


class DrissionHost(HostAdapter, AutoLoggerMixin):
    """
    DrissionPage 宿主。

    Args:
        channel: 消息通道，surface 打开期间 ClipboardWriter 挂在上面
        profile_path: Chrome 用户数据目录，None 时用系统默认 profile（可连接已打开的浏览器）
        base_url: get_url() 的前缀，surface 标签页就打开在 base_url + surface_path
    """

    _custom_log_filename = "host.log"

    def __init__(self, channel, profile_path: Optional[str] = None,
                 base_url: str = "about:blank#tabclip",
                 quirks: Optional[HostQuirks] = None,
                 writer: Optional[ClipboardWriter] = None):
        self.channel = channel
        self.profile_path = profile_path
        self.base_url = base_url
        self.quirks = quirks or HostQuirks()
        self.writer = writer or ClipboardWriter()

        self.browser: Optional[Any] = None
        self._surface_url: Optional[str] = None

    # --- Lifecycle (生命周期管理) ---

    async def start(self, headless: bool = False):
        os.environ["no_proxy"] = "localhost,127.0.0.1"

        if self.profile_path:
            co = ChromiumOptions()
            co.set_user_data_path(self.profile_path)
        else:
            co = ChromiumOptions().use_system_user_path()
        if headless:
            co.headless()

        self.browser = await asyncio.to_thread(ChromiumPage, addr_or_opts=co)
        self.echo(f"Connected to browser (profile={self.profile_path or 'system'})")

    async def close(self):
        if self.browser:
            try:
                await asyncio.to_thread(self.browser.quit)
            except Exception:
                self.logger.exception("Error closing browser")
            finally:
                self.browser = None

    def _require_browser(self):
        if not self.browser:
            raise RuntimeError("Browser not started. Call start() first.")
        return self.browser

    # --- Tabs (标签页) ---

    def _window_id(self, tab) -> Optional[int]:
        try:
            return tab.run_cdp("Browser.getWindowForTarget").get("windowId")
        except Exception:
            self.logger.debug(f"windowId unavailable for tab {tab.tab_id}")
            return None

    def _snapshot_tabs(self) -> List[TabInfo]:
        browser = self._require_browser()
        latest = browser.latest_tab
        active_id = getattr(latest, "tab_id", latest)
        tabs = browser.get_tabs()

        # 最近激活的可能是 surface 自己，此时取最近的普通标签页（get_tabs 按激活顺序排列）
        visible = [tab for tab in tabs if not (tab.url or "").startswith(self.base_url)]
        if visible and active_id not in [tab.tab_id for tab in visible]:
            active_id = visible[0].tab_id

        infos = []
        for tab in tabs:
            is_active = tab.tab_id == active_id
            infos.append(TabInfo(
                id=tab.tab_id,
                window_id=self._window_id(tab),
                url=tab.url or "",
                title=tab.title or "",
                # CDP 没有多选和固定的概念：当前标签页就是唯一的高亮标签页
                highlighted=is_active,
                active=is_active,
            ))
        return infos

    async def query_tabs(self, query: Dict[str, Any]) -> List[TabInfo]:
        try:
            tabs = await asyncio.to_thread(self._snapshot_tabs)
        except Exception as e:
            raise TabQueryError(f"tab query failed: {e}") from e

        # 扩展自己的页面（surface 等）不算普通标签页
        tabs = [tab for tab in tabs if not tab.url.startswith(self.base_url)]

        filters = dict(query)
        if filters.pop("currentWindow", None):
            current = next((tab.window_id for tab in tabs if tab.active), None)
            tabs = [tab for tab in tabs if tab.window_id == current]
        for key, value in filters.items():
            tabs = [tab for tab in tabs if tab.matches(key, value)]
        return tabs

    async def get_platform_info(self) -> PlatformInfo:
        return PlatformInfo(
            os=PLATFORM_OS.get(platform.system(), platform.system().lower()),
            arch=platform.machine(),
        )

    # --- Shared surface (共享 surface) ---

    def _find_surface_tab(self, url: str):
        browser = self._require_browser()
        for tab in browser.get_tabs():
            if tab.url == url:
                return tab
        return None

    async def has_surface(self, url: str) -> bool:
        tab = await asyncio.to_thread(self._find_surface_tab, url)
        if tab is None:
            return False

        if not self.channel.has_receiver(self.writer.target):
            # 上一个进程遗留的 surface：复用它，只重新挂上写入端
            self.logger.warning(f"Found orphaned surface {url}, re-attaching writer")
            self.writer.attach(self.channel)
        self._surface_url = url
        return True

    async def create_surface(self, url: str, reasons: Sequence[str], justification: str):
        browser = self._require_browser()
        try:
            await asyncio.to_thread(browser.new_tab, url)
        except Exception as e:
            raise SurfaceCreateError(f"failed to open surface {url}: {e}") from e

        self.writer.attach(self.channel)
        self._surface_url = url
        self.logger.info(f"Surface opened at {url} (reasons={list(reasons)}, {justification})")

    async def close_surface(self):
        url = self._surface_url
        if url is None:
            raise SurfaceCloseError("No current offscreen document.")

        self.writer.detach(self.channel)
        try:
            tab = await asyncio.to_thread(self._find_surface_tab, url)
            if tab is not None:
                await asyncio.to_thread(self._require_browser().close_tabs, tab.tab_id)
        except Exception as e:
            raise SurfaceCloseError(f"failed to close surface {url}: {e}") from e
        finally:
            self._surface_url = None
        self.logger.info(f"Surface closed ({url})")

    # --- Content extraction (内容提取) ---

    async def execute_script(self, tab: TabInfo, command: Any) -> Dict[str, Any]:
        browser = self._require_browser()
        try:
            chromium_tab = await asyncio.to_thread(browser.get_tab, tab.id)
            raw = await asyncio.to_thread(chromium_tab.run_js, EXTRACT_SELECTION_JS)
            return json.loads(raw) if isinstance(raw, str) else dict(raw or {})
        except Exception as e:
            raise ScriptExecutionError(f"content extraction failed: {e}", tab_id=tab.id) from e
