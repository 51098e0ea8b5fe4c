import asyncio
import inspect
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING, Union

from .exceptions import MessageChannelError
from .log_util import AutoLoggerMixin

if TYPE_CHECKING:
    from .log_config import LogConfig


Handler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


class MessageChannel(AutoLoggerMixin):
    """
    跨上下文的消息通道

    按 payload["target"] 路由：
    - "offscreen.clipboardWrite" 由共享 surface 注册，负责真正写剪贴板
    - "popup.<callback>" 由发起复制的界面注册，用来接收完成通知
    """

    _custom_log_filename = "channel.log"

    def __init__(self, parent_logger: Optional[logging.Logger] = None,
                 log_config: Optional['LogConfig'] = None):
        self.directory: Dict[str, Handler] = {}
        self._share_logger(parent_logger, log_config)

    def _get_log_context(self) -> dict:
        return {"component": "channel"}

    def register(self, target: str, handler: Handler):
        self.directory[target] = handler
        self._log(logging.DEBUG, f"registered receiver {target}")

    def unregister(self, target: str):
        self.directory.pop(target, None)

    def has_receiver(self, target: str) -> bool:
        return target in self.directory

    async def send_message(self, payload: Dict[str, Any]) -> Any:
        """
        发送消息并等待接收方处理完。

        Raises:
            MessageChannelError: 没有接收方（例如弹窗已经关闭）
        """
        target = payload.get("target")
        handler = self.directory.get(target)
        if handler is None:
            raise MessageChannelError(
                "Could not establish connection. Receiving end does not exist.",
                target=target,
            )

        result = handler(payload)
        if inspect.isawaitable(result):
            result = await result
        else:
            # 同步接收方也要让出一次事件循环，和真正的跨上下文调用保持一致
            await asyncio.sleep(0)
        return result
