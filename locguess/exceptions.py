"""
Exceptions raised by the game components.

None of these are fatal. Components raise them; the mode state machine and
the sharing chain catch them at their boundary and turn them into a status
message while the game stays in a valid mode.
"""

from __future__ import annotations


class LocGuessError(Exception):
    """Base exception for the location guessing game."""
    pass


class PermissionDeniedError(LocGuessError):
    """Camera or geolocation access was refused by the user or the device."""

    def __init__(self, resource: str, message: str | None = None):
        self.resource = resource
        super().__init__(message or f"{resource} access denied")


class CapabilityNotReadyError(LocGuessError):
    """The detection model has not finished loading."""
    pass


class PositionTimeoutError(LocGuessError):
    """No position fix was obtained within the allowed wait."""

    def __init__(self, timeout: float):
        self.timeout = timeout
        super().__init__(f"No position fix within {timeout:g}s")


class PositionUnavailableError(LocGuessError):
    """Geolocation is not supported or the provider reported an error."""
    pass


class AccuracyInsufficientError(LocGuessError):
    """The position reading is less accurate than the capture threshold."""

    def __init__(self, accuracy: float, threshold: float):
        self.accuracy = accuracy
        self.threshold = threshold
        super().__init__(
            f"Location accuracy {accuracy:.1f}m exceeds {threshold:.1f}m "
            f"(need {self.gap:.1f}m better)"
        )

    @property
    def gap(self) -> float:
        return self.accuracy - self.threshold


class EmptyDetectionError(LocGuessError):
    """No prediction survived filtering."""
    pass


class MalformedChallengeError(LocGuessError):
    """A challenge token could not be decoded or validated."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid challenge: {reason}")


class FrameUnavailableError(LocGuessError):
    """The camera stream has no frame to hand out."""
    pass


class ShareFailedError(LocGuessError):
    """A share strategy could not deliver the invitation."""
    pass


class DetectionFailedError(LocGuessError):
    """The detection model crashed or returned output that can't be read."""
    pass
