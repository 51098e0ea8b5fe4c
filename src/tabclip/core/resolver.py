"""
Copy-Target Resolver - 把一条 CopyCommand 解析成要复制的标签页列表

流程：
1. 规范化 target（tab / window / all）
2. 按范围构造 TargetQuery，再叠加选项（exclude_pin）和右键菜单修正
3. 查询宿主（宿主忽略过滤条件时在客户端重新过滤）
4. 依次执行后置修正（FilterStage），每个修正对应一个已知的宿主缺陷，可单独关闭
5. 需要时对唯一的来源标签页执行内容提取，并派生 selection_text
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, TYPE_CHECKING

from .command import (
    CopyCommand,
    CopyTarget,
    EXCLUDE_PIN,
    EXCLUDE_HIDDEN,
    COPY_NO_TAB,
    COPY_SCRIPTING,
)
from .host.host_adapter import HostAdapter, TabInfo
from .log_util import AutoLoggerMixin

if TYPE_CHECKING:
    from .log_config import LogConfig


# "当前窗口" 只是宿主的便利键，客户端没有可靠的等价判断
CURRENT_WINDOW_KEY = "currentWindow"

DEFAULT_CONTROL_PATHS = ("/popup/popup.html",)


@dataclass
class TargetQuery:
    """
    一次解析用的宿主查询条件，None 表示不加这个条件。
    """
    current_window: Optional[bool] = None
    highlighted: Optional[bool] = None
    window_id: Optional[int] = None
    id: Optional[Any] = None
    pinned: Optional[bool] = None

    @classmethod
    def for_command(cls, cmd: CopyCommand) -> 'TargetQuery':
        """按范围构造基础查询（不含选项）"""
        scope = cmd.scope
        origin = cmd.origin_tab

        if scope is CopyTarget.WINDOW and origin is not None and origin.window_id is not None:
            return cls(window_id=origin.window_id)
        if scope is CopyTarget.TAB and origin is not None and origin.id is not None:
            return cls(window_id=origin.window_id, id=origin.id)
        if scope is CopyTarget.TAB:
            return cls(current_window=True, highlighted=True)
        if scope is CopyTarget.WINDOW:
            return cls(current_window=True)
        return cls()

    def to_filter(self) -> Dict[str, Any]:
        """转成平台过滤键"""
        pairs = (
            (CURRENT_WINDOW_KEY, self.current_window),
            ("highlighted", self.highlighted),
            ("windowId", self.window_id),
            ("id", self.id),
            ("pinned", self.pinned),
        )
        return {key: value for key, value in pairs if value is not None}


def refilter_tabs(tabs: Iterable[TabInfo], query: Dict[str, Any],
                  excluded_urls: Sequence[str] = ()) -> List[TabInfo]:
    """
    客户端补做过滤：重新应用查询里的每个键（currentWindow 除外），并去掉扩展自己的控制页面。

    用于 Kiwi Browser 在 mv3 下无视过滤条件、总是返回全部标签页的情况。
    """
    keys = {key: value for key, value in query.items() if key != CURRENT_WINDOW_KEY}
    result = [tab for tab in tabs if all(tab.matches(key, value) for key, value in keys.items())]
    return [tab for tab in result if tab.url not in excluded_urls]


# ==========================================
# 后置修正（Filter Stages）
# ==========================================

class FilterStage(ABC):
    """
    一个后置修正。

    apply() 收到的是上一阶段的结果 tabs，以及宿主原始返回的 candidates。
    """
    name: str = ""

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    @abstractmethod
    def applies(self, cmd: CopyCommand, host: HostAdapter) -> bool:
        pass

    @abstractmethod
    def apply(self, tabs: List[TabInfo], candidates: List[TabInfo], cmd: CopyCommand) -> List[TabInfo]:
        pass

    def __repr__(self):
        return f"{self.__class__.__name__}(name={self.name!r}, enabled={self.enabled})"


class WindowIdNarrowingStage(FilterStage):
    """
    右键菜单 + 窗口范围：只保留 windowId 与来源标签页一致的标签页。

    宿主的窗口过滤不可靠（#20 有时无法复制窗口），所以从宿主返回的全部候选里重新筛。
    """
    name = "window_id_narrowing"

    def applies(self, cmd, host):
        return cmd.is_context_menu and cmd.scope is CopyTarget.WINDOW

    def apply(self, tabs, candidates, cmd):
        window_id = cmd.origin_tab.window_id if cmd.origin_tab else None
        return [tab for tab in candidates if tab.window_id == window_id]


class UnselectedOriginTabStage(FilterStage):
    """
    右键菜单 + 标签页范围：在未选中的标签页上调出菜单时，复制对象就是它自己，
    而不是当前高亮的那一组。
    """
    name = "unselected_origin_tab"

    def applies(self, cmd, host):
        return cmd.is_context_menu and cmd.scope is CopyTarget.TAB

    def apply(self, tabs, candidates, cmd):
        origin = cmd.origin_tab
        origin_id = origin.id if origin else None
        if any(tab.id == origin_id for tab in candidates):
            return tabs
        return [origin] if origin else []


class HiddenTabStage(FilterStage):
    """去掉隐藏标签页（只在带 hidden 属性的宿主上生效）"""
    name = "exclude_hidden"

    def applies(self, cmd, host):
        return host.quirks.exposes_hidden and cmd.has_option(EXCLUDE_HIDDEN)

    def apply(self, tabs, candidates, cmd):
        return [tab for tab in tabs if not tab.hidden]


class NoTabFallbackStage(FilterStage):
    """#24 没有可复制的标签页时，复制来源标签页（右键菜单优先）"""
    name = "copy_no_tab"

    def applies(self, cmd, host):
        return cmd.has_option(COPY_NO_TAB)

    def apply(self, tabs, candidates, cmd):
        if tabs:
            return tabs
        return [cmd.origin_tab] if cmd.origin_tab else []


def default_stages() -> List[FilterStage]:
    return [
        WindowIdNarrowingStage(),
        UnselectedOriginTabStage(),
        HiddenTabStage(),
        NoTabFallbackStage(),
    ]


class TargetResolver(AutoLoggerMixin):
    """
    复制对象解析器

    每次调用都是无状态的：(CopyCommand, 宿主标签页快照) -> 标签页列表
    """

    _custom_log_filename = "resolver.log"

    def __init__(self, host: HostAdapter, stages: Optional[List[FilterStage]] = None,
                 control_paths: Sequence[str] = DEFAULT_CONTROL_PATHS,
                 parent_logger: Optional[logging.Logger] = None,
                 log_config: Optional['LogConfig'] = None):
        self.host = host
        self.stages = stages if stages is not None else default_stages()
        self.control_paths = tuple(control_paths)
        self._share_logger(parent_logger, log_config)

    def _get_log_context(self) -> dict:
        return {"component": "resolver"}

    def get_stage(self, name: str) -> FilterStage:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)

    def build_query(self, cmd: CopyCommand) -> TargetQuery:
        query = TargetQuery.for_command(cmd)
        if cmd.has_option(EXCLUDE_PIN):
            query.pinned = False
        if cmd.is_context_menu and cmd.scope is CopyTarget.WINDOW:
            # 右键菜单带来的 windowId 才是准的，不是"当前窗口"
            query.current_window = None
        return query

    async def query_tabs(self, query: TargetQuery) -> List[TabInfo]:
        """查询宿主；宿主忽略过滤条件时在客户端补做"""
        query_filter = query.to_filter()
        tabs = await self.host.query_tabs(dict(query_filter))
        if not self.host.quirks.ignores_query_filters:
            return list(tabs)

        excluded = [self.host.get_url(path) for path in self.control_paths]
        filtered = refilter_tabs(tabs, query_filter, excluded)
        self._log(logging.DEBUG, f"host ignored query filters: {len(tabs)} -> {len(filtered)} tabs")
        return filtered

    async def resolve(self, cmd: CopyCommand) -> List[TabInfo]:
        """
        解析出要复制的标签页（不做内容提取）。

        Returns:
            List[TabInfo]: 宿主查询顺序，除非被回退规则替换
        """
        cmd.target = CopyTarget.normalize(cmd.target)
        query = self.build_query(cmd)
        candidates = await self.query_tabs(query)

        tabs = list(candidates)
        for stage in self.stages:
            if not stage.enabled or not stage.applies(cmd, self.host):
                continue
            before = len(tabs)
            tabs = stage.apply(tabs, candidates, cmd)
            self._log(logging.DEBUG, f"stage {stage.name}: {before} -> {len(tabs)} tabs")

        self._log(logging.INFO, f"resolved {len(tabs)} tab(s) for target={cmd.target.value} query={query.to_filter()}")
        return tabs

    async def enrich(self, cmd: CopyCommand, tabs: List[TabInfo]) -> CopyCommand:
        """
        内容提取 + selection_text 派生。

        只有在 copy_scripting 打开、范围是 tab、结果恰好是来源标签页这一个时才注入脚本。
        脚本失败直接向上抛。
        """
        origin = cmd.origin_tab
        if (cmd.has_option(COPY_SCRIPTING)
                and cmd.scope is CopyTarget.TAB
                and len(tabs) == 1
                and origin is not None
                and tabs[0].id == origin.id):
            cmd.scripting = await self.host.execute_script(tabs[0], cmd)

        scripted = (cmd.scripting or {}).get("pageSelectionText")
        cmd.selection_text = cmd.invocation.selection_text or scripted or ""
        return cmd
