"""Quest catalog, per-user progress tracking and daily reset."""

from .service import QuestProgressService

__all__ = ["QuestProgressService"]
