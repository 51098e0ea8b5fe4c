"""
测试 DrissionPage 宿主（browser 换成内存里的替身，不需要真正的 Chromium）

验证：
1. base_url 下的页面不出现在查询结果里
2. currentWindow 在客户端按当前标签页所在窗口过滤
3. 最近激活的是 surface 时，当前标签页取最近的普通标签页
4. 遗留的 surface 被探测到后重新挂上写入端
5. 没有 surface 时关闭报错
"""

import asyncio
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from tabclip.core.command import CLIPBOARD_WRITE_TARGET
from tabclip.core.exceptions import SurfaceCloseError, SurfaceCreateError, TabQueryError
from tabclip.core.host.drission_host import DrissionHost
from tabclip.core.message_channel import MessageChannel

BASE_URL = "about:blank#tabclip"
SURFACE_URL = BASE_URL + "/offscreen/offscreen.html"


class StubTab:
    def __init__(self, tab_id, url, window_id=1, title=""):
        self.tab_id = tab_id
        self.url = url
        self.title = title
        self.window_id = window_id

    def run_cdp(self, method):
        return {"windowId": self.window_id}


class StubBrowser:
    """get_tabs 按激活顺序返回（最近的在前），latest_tab 是第一个"""

    def __init__(self, tabs):
        self.tabs = list(tabs)
        self.closed = []
        self.fail_new_tab = False

    @property
    def latest_tab(self):
        return self.tabs[0] if self.tabs else None

    def get_tabs(self):
        return list(self.tabs)

    def new_tab(self, url):
        if self.fail_new_tab:
            raise RuntimeError("browser refused")
        tab = StubTab(f"T{len(self.tabs) + 1}", url)
        self.tabs.insert(0, tab)
        return tab

    def close_tabs(self, tab_id):
        self.closed.append(tab_id)
        self.tabs = [tab for tab in self.tabs if tab.tab_id != tab_id]


def make_host(tabs):
    channel = MessageChannel()
    host = DrissionHost(channel, base_url=BASE_URL)
    host.browser = StubBrowser(tabs)
    return host, channel


def ids(tabs):
    return [t.id for t in tabs]


def test_query_hides_surface_and_filters_current_window():
    host, _ = make_host([
        StubTab("A", "https://a.example", window_id=1),
        StubTab("S", SURFACE_URL, window_id=1),
        StubTab("B", "https://b.example", window_id=2),
        StubTab("C", "https://c.example", window_id=1),
    ])

    assert ids(asyncio.run(host.query_tabs({}))) == ["A", "B", "C"]
    assert ids(asyncio.run(host.query_tabs({"currentWindow": True}))) == ["A", "C"]
    assert ids(asyncio.run(host.query_tabs({"currentWindow": True, "highlighted": True}))) == ["A"]
    assert ids(asyncio.run(host.query_tabs({"windowId": 2}))) == ["B"]


def test_surface_as_latest_tab_does_not_hide_active_tab():
    host, _ = make_host([
        StubTab("S", SURFACE_URL, window_id=3),
        StubTab("A", "https://a.example", window_id=1),
        StubTab("B", "https://b.example", window_id=2),
    ])

    result = asyncio.run(host.query_tabs({"currentWindow": True, "highlighted": True}))
    assert ids(result) == ["A"]
    assert result[0].active


def test_query_failure_is_wrapped():
    host, _ = make_host([])
    host.browser = None
    with pytest.raises(TabQueryError):
        asyncio.run(host.query_tabs({}))


def test_create_and_close_surface_attach_writer():
    host, channel = make_host([StubTab("A", "https://a.example")])

    async def scenario():
        assert not await host.has_surface(SURFACE_URL)
        await host.create_surface(SURFACE_URL, ["CLIPBOARD"], "test")
        assert channel.has_receiver(CLIPBOARD_WRITE_TARGET)
        assert await host.has_surface(SURFACE_URL)

        await host.close_surface()
        assert not channel.has_receiver(CLIPBOARD_WRITE_TARGET)
        assert not await host.has_surface(SURFACE_URL)

    asyncio.run(scenario())
    assert host.browser.closed == ["T2"]


def test_orphaned_surface_reattaches_writer():
    host, channel = make_host([StubTab("S", SURFACE_URL), StubTab("A", "https://a.example")])
    assert not channel.has_receiver(CLIPBOARD_WRITE_TARGET)

    async def scenario():
        assert await host.has_surface(SURFACE_URL)
        assert channel.has_receiver(CLIPBOARD_WRITE_TARGET)
        # 复用的 surface 也能正常关闭
        await host.close_surface()

    asyncio.run(scenario())
    assert host.browser.closed == ["S"]


def test_close_without_surface_raises():
    host, _ = make_host([])
    with pytest.raises(SurfaceCloseError, match="No current offscreen document"):
        asyncio.run(host.close_surface())


def test_create_failure_is_wrapped():
    host, channel = make_host([])
    host.browser.fail_new_tab = True
    with pytest.raises(SurfaceCreateError):
        asyncio.run(host.create_surface(SURFACE_URL, ["CLIPBOARD"], "test"))
    assert not channel.has_receiver(CLIPBOARD_WRITE_TARGET)


def test_platform_info_maps_system_name(monkeypatch):
    from tabclip.core.host import drission_host
    monkeypatch.setattr(drission_host.platform, "system", lambda: "Windows")
    monkeypatch.setattr(drission_host.platform, "machine", lambda: "AMD64")
    host, _ = make_host([])

    info = asyncio.run(host.get_platform_info())
    assert info.os == "win"
    assert info.arch == "AMD64"
