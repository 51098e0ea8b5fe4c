"""
tabclip: copy browser tabs to the clipboard through a shared, reference-counted clipboard surface.

tabclip resolves which tabs a copy command targets (current tab, window, all tabs, context-menu
invocations) and serializes creation and teardown of the single clipboard-writing surface the
host allows.
"""

__version__ = "0.1.0"

from .core.command import CopyCommand, CopyTarget, InvocationContext, CopyResult
from .core.copy_service import CopyService
from .core.message_channel import MessageChannel
from .core.resolver import TargetResolver
from .core.surface import SurfaceLifecycleManager

__all__ = [
    "CopyCommand",
    "CopyTarget",
    "InvocationContext",
    "CopyResult",
    "CopyService",
    "MessageChannel",
    "TargetResolver",
    "SurfaceLifecycleManager",
    "__version__",
]
