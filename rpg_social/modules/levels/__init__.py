"""Level catalog: validated table, default curve, seeding and lookups."""

from .service import LevelService
from .table import LevelEntry, LevelTable, build_default_levels, xp_required_for

__all__ = ["LevelService", "LevelEntry", "LevelTable", "build_default_levels", "xp_required_for"]
