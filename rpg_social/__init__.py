"""
rpg_social: leveling, XP and quest progression engine for a gamified
social network.

Packages
--------
- core: configuration, logging, database, events, validation, audit
- database.models: ORM schema
- modules: domain services (levels, progression, quests, badges, users)
"""

__version__ = "0.1.0"
