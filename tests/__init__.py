"""
rpg_social test suite.

- tests/unit/          : pure logic, validators, event bus, config and retry
- tests/integration/   : services against a per-test SQLite file (aiosqlite)

Select a layer with ``pytest -m unit`` or ``pytest -m integration``.
"""
