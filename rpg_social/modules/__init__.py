"""
Domain modules.

- levels: level catalog and lookups
- progression: XP math and the XP award service
- quests: quest catalog, progress tracking, daily reset
- badges: badge unlocks
- users: registration and progression read model
- shared: base service/repository, domain exceptions, constants
"""
