"""
Shared Surface Lifecycle Manager - 共享 surface（offscreen document）的引用计数与生命周期

宿主只允许同时存在一个 surface，并且：
1. 不能有两个并发的创建请求
2. 关闭不能和创建交错
3. 所有使用者都用完之后才能关闭（否则正在写的人会收到 "No current offscreen document."）
4. 后台进程异常退出时 surface 可能被遗留下来，下次 acquire 要靠存在探测复用它，不能再开第二个
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, Sequence, TYPE_CHECKING

from .host.host_adapter import HostAdapter
from .log_util import AutoLoggerMixin

if TYPE_CHECKING:
    from .log_config import LogConfig


DEFAULT_SURFACE_PATH = "/offscreen/offscreen.html"
DEFAULT_REASONS = ("CLIPBOARD",)
DEFAULT_JUSTIFICATION = "Used for writing to the clipboard."


class SurfaceLifecycleManager(AutoLoggerMixin):
    """
    共享 surface 管理器

    只暴露 acquire() / release()（以及成对调用它们的 hold()）。
    _lock 守护两个 in-flight 句柄：检查和设置都在锁内完成，中间没有挂起点。
    """

    _custom_log_filename = "surface.log"

    def __init__(self, host: HostAdapter, path: str = DEFAULT_SURFACE_PATH,
                 reasons: Sequence[str] = DEFAULT_REASONS,
                 justification: str = DEFAULT_JUSTIFICATION,
                 parent_logger: Optional[logging.Logger] = None,
                 log_config: Optional['LogConfig'] = None):
        self.host = host
        self.path = path
        self.reasons = tuple(reasons)
        self.justification = justification
        self._share_logger(parent_logger, log_config)

        self._using_count = 0
        self._creating: Optional[asyncio.Task] = None
        self._closing: Optional[asyncio.Task] = None
        # 每发起一次创建加一，用来识别过时的存在探测结果
        self._create_generation = 0
        self._lock = asyncio.Lock()

    def _get_log_context(self) -> dict:
        return {"component": "surface"}

    @property
    def url(self) -> str:
        return self.host.get_url(self.path)

    @property
    def using_count(self) -> int:
        return self._using_count

    @property
    def is_creating(self) -> bool:
        return self._creating is not None

    @property
    def is_closing(self) -> bool:
        return self._closing is not None

    async def acquire(self):
        """
        登记一个使用者，并保证返回时 surface 已经存在。

        计数在等待之前就已经加上，所以在关闭途中到达的人，等关闭结束后会重新检查并在需要时创建。
        失败时撤销自己的计数并把异常抛给调用方，此时不需要再调用 release()。
        """
        self._using_count += 1
        try:
            await self._wait_for_closing()
            await self._ensure_surface()
        except BaseException:
            # 发起者在创建途中被取消时，创建任务仍会完成：surface 留在宿主里而计数为 0。
            # 下一次 acquire 的存在探测会复用它，之后的 release 负责关闭。
            self._using_count = max(self._using_count - 1, 0)
            raise
        self._log(logging.DEBUG, f"surface acquired (using={self._using_count})")

    async def release(self):
        """
        注销一个使用者。最后一个人离开时关闭 surface。
        """
        self._using_count -= 1
        if self._using_count > 0:
            self._log(logging.DEBUG, f"surface released (using={self._using_count})")
            return
        self._using_count = 0

        async with self._lock:
            if self._closing is not None:
                return
            closing = self._closing = self._start(self.host.close_surface(), "_closing")

        self._log(logging.DEBUG, "last user left, closing surface")
        await asyncio.shield(closing)

    @asynccontextmanager
    async def hold(self):
        """async with manager.hold(): ... 自动配对 acquire/release"""
        await self.acquire()
        try:
            yield self
        finally:
            await self.release()

    async def _wait_for_closing(self):
        async with self._lock:
            closing = self._closing
        if closing is not None:
            self._log(logging.DEBUG, "surface is closing, waiting before re-examining")
            await self._await_in_flight(closing, "close")

    async def _ensure_surface(self):
        url = self.url
        while True:
            generation = self._create_generation
            if await self.host.has_surface(url):
                return

            async with self._lock:
                creating = self._creating
                if creating is None and generation != self._create_generation:
                    # 探测期间别人发起并完成了一次创建，探测结果已经过时
                    continue
                owner = creating is None
                if owner:
                    self._create_generation += 1
                    creating = self._creating = self._start(
                        self.host.create_surface(url, self.reasons, self.justification),
                        "_creating",
                    )

            if owner:
                self._log(logging.INFO, f"creating surface {url}")
                await asyncio.shield(creating)
                return

            # 别人正在创建：等它结束后重新探测
            await self._await_in_flight(creating, "create")

    def _start(self, coro, slot: str) -> asyncio.Task:
        """
        启动一个宿主调用并放进 in-flight 槽位。
        槽位在任务结束时（成功、失败或取消）由回调清空，不依赖发起者是否还在等待。
        """
        task = asyncio.ensure_future(coro)

        def _clear(done: asyncio.Task):
            if getattr(self, slot) is done:
                setattr(self, slot, None)

        task.add_done_callback(_clear)
        return task

    async def _await_in_flight(self, task: asyncio.Task, action: str):
        """等待别人发起的操作。它的异常由发起者负责，这里只记录然后重新检查"""
        try:
            await asyncio.shield(task)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._log(logging.WARNING, f"in-flight surface {action} failed ({e}), re-examining")
