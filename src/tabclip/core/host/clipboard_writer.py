"""
共享 surface 里真正写剪贴板的一端（pyperclip 负责 xclip/xsel、pbcopy、Windows API 的差异）
"""
import asyncio
from typing import Any, Dict, Optional

import pyperclip

from ..command import ClipboardPayload, CLIPBOARD_WRITE_TARGET
from ..log_util import AutoLoggerMixin


class ClipboardWriter(AutoLoggerMixin):
    """
    注册到 MessageChannel 的 "offscreen.clipboardWrite" 上，收到消息就写剪贴板。

    html 标记只被记录：pyperclip 只支持纯文本。
    """

    _custom_log_filename = "surface.log"

    def __init__(self, target: str = CLIPBOARD_WRITE_TARGET):
        self.target = target
        self.last_payload: Optional[ClipboardPayload] = None

    async def write(self, payload: ClipboardPayload):
        if payload.html:
            self.logger.debug("html payload requested, writing as plain text")
        await asyncio.to_thread(pyperclip.copy, payload.text)
        self.last_payload = payload
        self.logger.debug(f"clipboard written ({len(payload.text)} chars, api={payload.api})")

    async def handle_message(self, message: Dict[str, Any]) -> bool:
        await self.write(ClipboardPayload.from_message(message))
        return True

    def attach(self, channel):
        channel.register(self.target, self.handle_message)

    def detach(self, channel):
        channel.unregister(self.target)

    def is_available(self) -> bool:
        return pyperclip.is_available()
