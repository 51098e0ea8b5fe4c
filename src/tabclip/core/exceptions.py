"""
tabclip 自定义异常类

宿主原语（标签页查询、共享 surface 的创建/关闭、脚本注入）的失败都归到 HostPrimitiveError 之下，
它们会原样传播到 acquire/release/resolve 的调用方。
"""


class TabClipError(Exception):
    """tabclip 所有异常的基类"""
    pass


class HostPrimitiveError(TabClipError):
    """宿主原语调用失败（基类）"""
    pass


class SurfaceCreateError(HostPrimitiveError):
    """创建共享 surface 失败"""
    pass


class SurfaceCloseError(HostPrimitiveError):
    """关闭共享 surface 失败

    例如 surface 已经被别人关掉："No current offscreen document."
    """
    pass


class TabQueryError(HostPrimitiveError):
    """标签页查询失败"""
    pass


class ScriptExecutionError(HostPrimitiveError):
    """向页面注入内容提取脚本失败"""

    def __init__(self, message: str, tab_id=None):
        super().__init__(message)
        self.tab_id = tab_id


class MessageChannelError(TabClipError):
    """消息通道上没有接收方

    对应 "Could not establish connection. Receiving end does not exist."
    """

    def __init__(self, message: str, target: str = None):
        super().__init__(message)
        self.target = target


class ConfigError(TabClipError):
    """配置文件内容不合法"""
    pass
