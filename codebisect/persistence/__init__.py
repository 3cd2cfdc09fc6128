"""Database models and state management for bisection sessions."""

from codebisect.persistence.models import Iteration, Session
from codebisect.persistence.state_manager import DatabaseError, StateManager


__all__ = [
    # Models
    "Session",
    "Iteration",
    # State Manager
    "DatabaseError",
    "StateManager",
]
