"""
Wildcard event-name matching for the EventBus.

Supported Patterns
------------------
- Exact:    "player.leveled_up"
- Global:   "*"
- Prefix:   "player.*"  -> "player.xp_awarded", "player.leveled_up"
- Suffix:   "*.completed" -> "quest.completed"
- Sandwich: "quest.*.updated"

Matching is case-sensitive; repeated wildcards collapse to one.
"""

from __future__ import annotations


class EventRouter:
    """
    Stateless wildcard matcher.

    >>> EventRouter().matches("quest.completed", "quest.*")
    True
    >>> EventRouter().matches("quest.completed", "player.*")
    False
    """

    def matches(self, event_name: str, pattern: str) -> bool:
        if pattern == "*":
            return True

        if "*" not in pattern:
            return event_name == pattern

        while "**" in pattern:
            pattern = pattern.replace("**", "*")

        parts = pattern.split("*")
        head, tail = parts[0], parts[-1]

        if head and not event_name.startswith(head):
            return False
        if tail and not event_name.endswith(tail):
            return False
        if len(head) + len(tail) > len(event_name):
            return False

        # Middle pieces must appear in order between head and tail
        idx = len(head)
        limit = len(event_name) - len(tail)
        for mid in parts[1:-1]:
            if not mid:
                continue
            next_idx = event_name.find(mid, idx, limit)
            if next_idx == -1:
                return False
            idx = next_idx + len(mid)

        return True
