"""
Sharing - Native share, clipboard, or a manual copy field, in that order.
"""

from .strategies import (
    SharePayload,
    ShareOutcome,
    ShareReport,
    ShareStrategy,
    NativeShare,
    ClipboardShare,
    ManualCopyShare,
    ShareChain,
    share_text,
)

__all__ = [
    "SharePayload",
    "ShareOutcome",
    "ShareReport",
    "ShareStrategy",
    "NativeShare",
    "ClipboardShare",
    "ManualCopyShare",
    "ShareChain",
    "share_text",
]
