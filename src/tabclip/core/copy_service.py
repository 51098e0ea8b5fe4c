"""
Copy Service - 复制命令的编排层

on_copy(command): 解析目标 -> 内容提取 -> 格式化 -> 写剪贴板 -> 通知界面

共享 surface 的管理器由这里持有（每个 CopyService 一个），不是模块级全局变量。
"""

import logging
import re
from typing import List, Optional

from .command import (
    CALLBACK_TARGET_PREFIX,
    COPY_CLIPBOARD_API,
    COPY_EMPTY,
    COPY_HTML,
    ClipboardPayload,
    CopyCommand,
    CopyResult,
    CopyTarget,
    HTML_FORMAT_MIN_ID,
)
from .format_engine import FormatEngine
from .host.host_adapter import HostAdapter, PlatformInfo, TabInfo
from .loader import DefaultPreferences
from .log_config import LogConfig
from .log_util import AutoLoggerMixin
from .message_channel import MessageChannel
from .resolver import TargetResolver
from .surface import SurfaceLifecycleManager

NEWLINE_CODES = {
    "CRLF": "\r\n",
    "CR": "\r",
    "LF": "\n",
}

TAG_PATTERN = re.compile(r"<.+>")


class CopyService(AutoLoggerMixin):
    """
    复制服务

    Args:
        host: 宿主适配器
        channel: 消息通道（共享 surface 和界面都挂在上面）
        preferences: 默认设置
        formatter: 格式化协作者，需要提供 create_format_text(cmd, tabs)
        writer: 不需要共享 surface 的宿主直接用它写剪贴板，需要提供 async write(payload)
    """

    _custom_log_filename = "copy.log"

    def __init__(self, host: HostAdapter, channel: MessageChannel,
                 preferences: Optional[DefaultPreferences] = None,
                 formatter=None, writer=None,
                 surface_path: Optional[str] = None,
                 control_paths=None,
                 log_config: Optional[LogConfig] = None):
        self.host = host
        self.channel = channel
        self.preferences = preferences or DefaultPreferences()
        self.formatter = formatter or FormatEngine(self.preferences.format)
        self.writer = writer
        self.log_config = log_config or LogConfig(prefix="[{component}]")

        surface_kwargs = {"path": surface_path} if surface_path else {}
        self.surface = SurfaceLifecycleManager(
            host, parent_logger=self.logger, log_config=self.log_config, **surface_kwargs
        )
        resolver_kwargs = {"control_paths": control_paths} if control_paths is not None else {}
        self.resolver = TargetResolver(
            host, parent_logger=self.logger, log_config=self.log_config, **resolver_kwargs
        )

        self._platform: Optional[PlatformInfo] = None

    def _get_log_context(self) -> dict:
        return {"component": "copy"}

    async def get_platform(self) -> PlatformInfo:
        if self._platform is None:
            self._platform = await self.host.get_platform_info()
        return self._platform

    async def get_enter_code(self, cmd: CopyCommand) -> str:
        newline = self.preferences.resolve_newline(cmd)
        if newline in NEWLINE_CODES:
            return NEWLINE_CODES[newline]
        platform = await self.get_platform()
        return "\r\n" if platform.os == "win" else "\n"

    def build_payload(self, cmd: CopyCommand, tabs: List[TabInfo]) -> ClipboardPayload:
        text = self.formatter.create_format_text(cmd, tabs)
        payload = ClipboardPayload(
            text=text,
            html=(cmd.has_option(COPY_HTML)
                  and cmd.format_id >= HTML_FORMAT_MIN_ID
                  and bool(TAG_PATTERN.search(cmd.format or ""))),
            api=cmd.has_option(COPY_CLIPBOARD_API),
        )
        if cmd.has_option(COPY_EMPTY) and payload.text == "":
            # 空字符串复制"成功"后，粘贴时不会覆盖选区（Windows），用空格代替
            payload.text = " "
        return payload

    async def copy_to_clipboard(self, cmd: CopyCommand, tabs: List[TabInfo]) -> ClipboardPayload:
        payload = self.build_payload(cmd, tabs)

        if not self.host.quirks.requires_surface:
            if self.writer is None:
                raise RuntimeError("host does not use a shared surface, but no writer was given")
            await self.writer.write(payload)
            return payload

        async with self.surface.hold():
            await self.channel.send_message(payload.to_message())
        return payload

    async def notify(self, cmd: CopyCommand) -> bool:
        """通知发起复制的界面。界面可能已经关掉了，失败不算错误"""
        if not cmd.callback:
            return False
        try:
            await self.channel.send_message({"target": CALLBACK_TARGET_PREFIX + cmd.callback})
        except Exception as e:
            self._log(logging.DEBUG, f"callback {cmd.callback} not delivered: {e}")
            return False
        return True

    async def on_copy(self, cmd: CopyCommand) -> CopyResult:
        cmd.enter = await self.get_enter_code(cmd)
        cmd.separator = self.preferences.resolve_separator(cmd)
        cmd.exoptions = self.preferences.resolve_options(cmd)
        cmd.target = CopyTarget.normalize(cmd.target)

        tabs = await self.resolver.resolve(cmd)
        await self.resolver.enrich(cmd, tabs)

        payload = await self.copy_to_clipboard(cmd, tabs)
        self._log(logging.INFO, f"copied {len(tabs)} tab(s), {len(payload.text)} chars")

        notified = await self.notify(cmd)
        return CopyResult(tabs=tabs, payload=payload, notified=notified)
