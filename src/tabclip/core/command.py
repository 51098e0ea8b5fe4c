"""
复制命令的数据模型

CopyCommand 由外部（快捷键 / 右键菜单 / 弹窗）构造，本包只在上面追加派生字段：
enter, separator, exoptions, selection_text, scripting。
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .host.host_adapter import TabInfo


class CopyTarget(Enum):
    """复制范围"""
    TAB = "tab"
    WINDOW = "window"
    ALL = "all"

    @classmethod
    def normalize(cls, value) -> 'CopyTarget':
        """无法识别的值一律当作 tab"""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.TAB


# 选项名
EXCLUDE_PIN = "exclude_pin"
EXCLUDE_HIDDEN = "exclude_hidden"
COPY_EMPTY = "copy_empty"
COPY_NO_TAB = "copy_no_tab"
COPY_SCRIPTING = "copy_scripting"
COPY_HTML = "copy_html"
COPY_CLIPBOARD_API = "copy_clipboard_api"

OPTION_NAMES = (
    EXCLUDE_PIN,
    EXCLUDE_HIDDEN,
    COPY_EMPTY,
    COPY_NO_TAB,
    COPY_SCRIPTING,
    COPY_HTML,
    COPY_CLIPBOARD_API,
)

# 只有这个编号及以后的格式槽位允许以 HTML 复制
HTML_FORMAT_MIN_ID = 3

CLIPBOARD_WRITE_TARGET = "offscreen.clipboardWrite"
CALLBACK_TARGET_PREFIX = "popup."


@dataclass
class InvocationContext:
    """
    命令是从哪里触发的。

    origin_tab: 触发时所在（或右键点中）的标签页
    is_context_menu: 是否来自标签页右键菜单
    selection_text: 右键菜单带过来的选中文本
    """
    origin_tab: Optional[TabInfo] = None
    is_context_menu: bool = False
    selection_text: Optional[str] = None


@dataclass
class CopyCommand:
    target: Union[CopyTarget, str] = CopyTarget.TAB
    format_id: int = 0
    format: str = ""
    invocation: InvocationContext = field(default_factory=InvocationContext)
    # True: 命令自带 newline / separator / options，否则用默认设置
    extended: bool = False
    newline: str = "default"
    separator: str = ""
    options: Dict[str, bool] = field(default_factory=dict)
    callback: Optional[str] = None

    # --- 派生字段 ---
    enter: Optional[str] = None
    exoptions: Dict[str, bool] = field(default_factory=dict)
    selection_text: str = ""
    scripting: Optional[Dict[str, Any]] = None

    @property
    def origin_tab(self) -> Optional[TabInfo]:
        return self.invocation.origin_tab

    @property
    def is_context_menu(self) -> bool:
        return self.invocation.is_context_menu

    @property
    def scope(self) -> CopyTarget:
        return CopyTarget.normalize(self.target)

    @property
    def scope_is_window(self) -> bool:
        return self.scope is CopyTarget.WINDOW

    def has_option(self, name: str) -> bool:
        """选项是否打开。exoptions 还没解析时退回命令自带的 options"""
        source = self.exoptions if self.exoptions else self.options
        return bool(source.get(name, False))


@dataclass
class ClipboardPayload:
    """发给共享 surface 的写入请求"""
    text: str
    html: bool = False
    api: bool = False
    target: str = CLIPBOARD_WRITE_TARGET

    def to_message(self) -> Dict[str, Any]:
        return {
            "target": self.target,
            "text": self.text,
            "html": self.html,
            "api": self.api,
        }

    @classmethod
    def from_message(cls, message: Dict[str, Any]) -> 'ClipboardPayload':
        return cls(
            text=message.get("text", ""),
            html=bool(message.get("html", False)),
            api=bool(message.get("api", False)),
            target=message.get("target", CLIPBOARD_WRITE_TARGET),
        )


@dataclass
class CopyResult:
    """一次 on_copy 的结果"""
    tabs: List[TabInfo]
    payload: ClipboardPayload
    notified: bool = False
