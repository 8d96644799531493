"""
Share Strategies - Getting a challenge to another player.

Strategies are tried in order until one succeeds:
1. Native share sheet (title, text, URL)
2. Clipboard write
3. Manual copy field (always works: the text is shown for the user to copy)

Each strategy returns a ShareOutcome; none of them raise. A failure only
moves the chain to the next strategy and adds a status update.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable
import inspect
import logging

from ..engine_core.state import StatusMessage
from ..exceptions import ShareFailedError

logger = logging.getLogger(__name__)


SHARE_TEXT_TEMPLATE = (
    "\U0001F3AF Location Guessing Game!\n\n"
    "I found these items in a photo:\n{items}\n\n"
    "Can you guess where I took this photo? Use the Location Guessing Game to find out!"
)


def share_text(items: list[str]) -> str:
    """Invitation text listing the items."""
    return SHARE_TEXT_TEMPLATE.format(items=", ".join(items))


@dataclass
class SharePayload:
    """What gets shared."""
    title: str
    text: str
    url: str | None = None

    @property
    def full_text(self) -> str:
        return f"{self.text}\n\n{self.url}" if self.url else self.text


@dataclass
class ShareOutcome:
    """Result of one strategy attempt."""
    success: bool
    strategy: str
    status: StatusMessage
    error: str | None = None

    # Text for the manual copy field, when that is what succeeded
    manual_text: str | None = None


async def _call(fn: Callable[..., Any], *args: Any) -> Any:
    result = fn(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


class ShareStrategy(ABC):
    name: str = "strategy"

    @abstractmethod
    async def share(self, payload: SharePayload) -> ShareOutcome:
        pass

    def _failed(self, error: Exception | str, message: str) -> ShareOutcome:
        logger.info(f"Share via {self.name} failed: {error}")
        return ShareOutcome(
            success=False,
            strategy=self.name,
            status=StatusMessage(message, "loading"),
            error=str(error),
        )


class NativeShare(ShareStrategy):
    """
    The platform share sheet.

    share_fn(title, text, url) may be sync or async; raising (for example
    when the user cancels) counts as failure.
    """
    name = "native"

    def __init__(self, share_fn: Callable[[str, str, str | None], Any | Awaitable[Any]] | None):
        self.share_fn = share_fn

    async def share(self, payload: SharePayload) -> ShareOutcome:
        if self.share_fn is None:
            return self._failed(
                "not available",
                "Native sharing not available, copying to clipboard...",
            )
        try:
            await _call(self.share_fn, payload.title, payload.text, payload.url)
        except Exception as e:
            return self._failed(e, "Share cancelled, copying to clipboard instead...")
        return ShareOutcome(
            success=True,
            strategy=self.name,
            status=StatusMessage("Challenge shared successfully!", "success"),
        )


class ClipboardShare(ShareStrategy):
    """Clipboard write; write_fn(text) may be sync or async."""
    name = "clipboard"

    def __init__(self, write_fn: Callable[[str], Any | Awaitable[Any]] | None):
        self.write_fn = write_fn

    async def share(self, payload: SharePayload) -> ShareOutcome:
        if self.write_fn is None:
            return self._failed("not available", "Clipboard not available.")
        try:
            result = await _call(self.write_fn, payload.full_text)
            if result is False:
                raise ShareFailedError("clipboard write returned False")
        except Exception as e:
            return self._failed(e, "Failed to copy to clipboard.")
        return ShareOutcome(
            success=True,
            strategy=self.name,
            status=StatusMessage("Challenge copied to clipboard!", "success"),
        )


class ManualCopyShare(ShareStrategy):
    """Last resort: hand the text back for a copy field."""
    name = "manual"

    async def share(self, payload: SharePayload) -> ShareOutcome:
        return ShareOutcome(
            success=True,
            strategy=self.name,
            status=StatusMessage("Copy the challenge below to share it.", "info"),
            manual_text=payload.full_text,
        )


@dataclass
class ShareReport:
    """Everything that happened while sharing."""
    outcome: ShareOutcome
    attempts: list[ShareOutcome] = field(default_factory=list)

    @property
    def statuses(self) -> list[StatusMessage]:
        return [attempt.status for attempt in self.attempts]


class ShareChain:
    """
    Ordered fallback over share strategies.

    Usage:
        chain = ShareChain.default(share_fn=device.share, write_fn=device.copy)
        report = await chain.share(payload)
        show(report.statuses)
    """

    def __init__(self, strategies: list[ShareStrategy]):
        if not strategies:
            raise ValueError("ShareChain needs at least one strategy")
        self.strategies = strategies

    @classmethod
    def default(
        cls,
        share_fn: Callable[..., Any] | None = None,
        write_fn: Callable[[str], Any] | None = None,
    ) -> ShareChain:
        return cls([NativeShare(share_fn), ClipboardShare(write_fn), ManualCopyShare()])

    async def share(self, payload: SharePayload) -> ShareReport:
        attempts: list[ShareOutcome] = []
        for strategy in self.strategies:
            outcome = await strategy.share(payload)
            attempts.append(outcome)
            if outcome.success:
                logger.info(f"Shared via {outcome.strategy}")
                return ShareReport(outcome=outcome, attempts=attempts)

        # Only reachable when the chain has no manual fallback
        final = ShareOutcome(
            success=False,
            strategy="none",
            status=StatusMessage(f"Failed to share. Please copy manually: {payload.full_text}", "error"),
            error="all strategies failed",
            manual_text=payload.full_text,
        )
        attempts.append(final)
        return ShareReport(outcome=final, attempts=attempts)
