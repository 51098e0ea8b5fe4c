"""
测试用的内存宿主

记录每次宿主原语调用，并检测创建/关闭是否出现重叠。
"""
import asyncio
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tabclip.core.command import CLIPBOARD_WRITE_TARGET
from tabclip.core.exceptions import SurfaceCloseError
from tabclip.core.host.host_adapter import HostAdapter, HostQuirks, PlatformInfo, TabInfo


class FakeHost(HostAdapter):
    """按 chrome.tabs.query 的语义过滤；quirks.ignores_query_filters 时原样返回全部标签页"""

    def __init__(self, tabs=None, quirks=None, os_name="linux", current_window_id=1,
                 create_delay=0.01, close_delay=0.01, channel=None):
        self.tabs = list(tabs or [])
        self.quirks = quirks or HostQuirks()
        self.base_url = "chrome-extension://fake-id"
        self.os_name = os_name
        self.current_window_id = current_window_id
        self.create_delay = create_delay
        self.close_delay = close_delay
        self.channel = channel

        self.surface_exists = False
        self.create_calls = 0
        self.close_calls = 0
        self.platform_calls = 0
        self._creating_now = 0
        self._closing_now = 0
        self.max_concurrent_creates = 0
        self.max_concurrent_closes = 0
        self.overlap_detected = False

        # 下面几次创建/关闭会失败
        self.create_failures = []
        self.close_failures = []

        self.queries = []
        self.script_calls = []
        self.script_result = {"pageSelectionText": ""}
        self.written = []

    # --- tabs ---

    async def query_tabs(self, query):
        self.queries.append(dict(query))
        await asyncio.sleep(0)
        if self.quirks.ignores_query_filters:
            return list(self.tabs)

        filters = dict(query)
        result = list(self.tabs)
        if filters.pop("currentWindow", None):
            result = [tab for tab in result if tab.window_id == self.current_window_id]
        for key, value in filters.items():
            result = [tab for tab in result if tab.matches(key, value)]
        return result

    async def get_platform_info(self):
        self.platform_calls += 1
        await asyncio.sleep(0)
        return PlatformInfo(os=self.os_name)

    # --- surface ---

    async def has_surface(self, url):
        await asyncio.sleep(0)
        return self.surface_exists

    async def create_surface(self, url, reasons, justification):
        self.create_calls += 1
        self._creating_now += 1
        if self._closing_now or self._creating_now > 1:
            self.overlap_detected = True
        self.max_concurrent_creates = max(self.max_concurrent_creates, self._creating_now)
        try:
            await asyncio.sleep(self.create_delay)
            if self.create_failures:
                raise self.create_failures.pop(0)
            self.surface_exists = True
            if self.channel is not None:
                self.channel.register(CLIPBOARD_WRITE_TARGET, self._on_write)
        finally:
            self._creating_now -= 1

    async def close_surface(self):
        self.close_calls += 1
        self._closing_now += 1
        if self._creating_now or self._closing_now > 1:
            self.overlap_detected = True
        self.max_concurrent_closes = max(self.max_concurrent_closes, self._closing_now)
        try:
            await asyncio.sleep(self.close_delay)
            if self.close_failures:
                raise self.close_failures.pop(0)
            if not self.surface_exists:
                raise SurfaceCloseError("No current offscreen document.")
            self.surface_exists = False
            if self.channel is not None:
                self.channel.unregister(CLIPBOARD_WRITE_TARGET)
        finally:
            self._closing_now -= 1

    async def _on_write(self, message):
        self.written.append(message)
        return True

    # --- scripting ---

    async def execute_script(self, tab, command):
        self.script_calls.append(tab.id)
        await asyncio.sleep(0)
        return dict(self.script_result)


class RecordingWriter:
    """不走共享 surface 时的直接写入端"""

    def __init__(self):
        self.payloads = []

    async def write(self, payload):
        await asyncio.sleep(0)
        self.payloads.append(payload)


def tab(id, window_id=1, **kwargs):
    return TabInfo(id=id, window_id=window_id, **kwargs)
