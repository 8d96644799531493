"""
Session Module - One game per session.

A session represents one player's game:
- Created when the app opens (optionally from a challenge link)
- Holds the mode state machine and its GameState
- Fed camera frames and position readings by the client
- Destroyed when the player leaves

Sessions are EPHEMERAL: nothing is persisted. Puzzles travel as
challenge tokens inside share URLs.
"""

from .mode_machine import ModeStateMachine, TransitionResult
from .manager import SessionManager, Session

__all__ = [
    "ModeStateMachine",
    "TransitionResult",
    "SessionManager",
    "Session",
]
