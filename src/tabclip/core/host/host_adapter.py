'''
宿主（浏览器）抽象层骨架。

它定义了**复制逻辑层**与**宿主执行层**之间的契约：

TabInfo (标签页描述)：

    宿主查询出来的标签页快照。逻辑层只读它的字段，不持有真实的标签页对象。

共享 surface：

    宿主只允许同时存在一个的特权执行环境（例如 Chrome 的 offscreen document），
    真正的剪贴板写入在里面完成。Adapter 只提供 存在探测 / 创建 / 关闭 三个原语，
    引用计数和串行化由 SurfaceLifecycleManager 负责。

HostQuirks (宿主怪癖)：

    各宿主已知的缺陷或差异，Resolver 根据它们决定要不要在客户端补做过滤。
'''
from abc import ABC, abstractmethod
from dataclasses import dataclass, asdict
from typing import List, Optional, Any, Dict, Sequence, Union

# 标签页 ID：Chrome 扩展里是 int，CDP 里是 targetId 字符串
TabId = Union[int, str]

# TargetQuery 里的键 -> TabInfo 的属性
QUERY_KEY_TO_FIELD = {
    "id": "id",
    "windowId": "window_id",
    "pinned": "pinned",
    "highlighted": "highlighted",
    "hidden": "hidden",
    "active": "active",
}


@dataclass
class TabInfo:
    """
    [Output] 一个标签页的描述。
    """
    id: TabId
    window_id: Optional[int] = None
    url: str = ""
    title: str = ""
    pinned: bool = False
    hidden: bool = False
    highlighted: bool = False
    active: bool = False

    def matches(self, key: str, value: Any) -> bool:
        """按查询键比较，未知的键视为匹配"""
        attr = QUERY_KEY_TO_FIELD.get(key)
        if attr is None:
            return True
        return getattr(self, attr) == value

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class PlatformInfo:
    """宿主平台信息，os 取值与 chrome.runtime.getPlatformInfo 一致: win / mac / linux / ..."""
    os: str
    arch: str = ""


@dataclass
class HostQuirks:
    """
    宿主已知的差异。

    ignores_query_filters: 查询时忽略所有过滤条件，总是返回全部标签页（Kiwi Browser mv3）
    exposes_hidden: 标签页带 hidden 属性（Firefox）
    requires_surface: 写剪贴板前必须先开共享 surface（Chrome 109+ 的 offscreen 方式）
    """
    ignores_query_filters: bool = False
    exposes_hidden: bool = False
    requires_surface: bool = True

    @classmethod
    def from_dict(cls, data: Optional[dict] = None) -> 'HostQuirks':
        data = data or {}
        return cls(
            ignores_query_filters=bool(data.get("ignores_query_filters", False)),
            exposes_hidden=bool(data.get("exposes_hidden", False)),
            requires_surface=bool(data.get("requires_surface", True)),
        )


class HostAdapter(ABC):
    """
    宿主平台的统一接口。
    负责屏蔽具体实现（DrissionPage / 测试用的内存宿主）的细节。
    """

    quirks: HostQuirks = HostQuirks()
    base_url: str = ""

    def get_url(self, path: str) -> str:
        """把扩展内路径转换成完整 URL（对应 chrome.runtime.getURL）"""
        return f"{self.base_url}{path}"

    # --- Tabs (标签页) ---

    @abstractmethod
    async def query_tabs(self, query: Dict[str, Any]) -> List[TabInfo]:
        """
        按过滤条件查询标签页，返回顺序即宿主的顺序。

        Args:
            query: 平台过滤键 -> 值，例如 {"currentWindow": True, "highlighted": True}
        """
        pass

    @abstractmethod
    async def get_platform_info(self) -> PlatformInfo:
        pass

    # --- Shared surface (共享 surface) ---

    @abstractmethod
    async def has_surface(self, url: str) -> bool:
        """幂等的存在探测。上一个进程留下的 surface 也要能探测到。"""
        pass

    @abstractmethod
    async def create_surface(self, url: str, reasons: Sequence[str], justification: str):
        """创建共享 surface。失败时抛出 SurfaceCreateError"""
        pass

    @abstractmethod
    async def close_surface(self):
        """关闭共享 surface。失败时抛出 SurfaceCloseError"""
        pass

    # --- Content extraction (内容提取) ---

    @abstractmethod
    async def execute_script(self, tab: TabInfo, command: Any) -> Dict[str, Any]:
        """
        在标签页里执行内容提取脚本。

        Returns:
            dict: 至少包含 pageSelectionText
        """
        pass
