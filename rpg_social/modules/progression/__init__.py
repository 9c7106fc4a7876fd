"""XP-to-level math and the XP award service."""

from .calculator import ProgressionSnapshot, compute_progression, find_level_binary, find_level_linear
from .xp_service import AwardOutcome, XpAwardService

__all__ = [
    "ProgressionSnapshot",
    "compute_progression",
    "find_level_binary",
    "find_level_linear",
    "AwardOutcome",
    "XpAwardService",
]
