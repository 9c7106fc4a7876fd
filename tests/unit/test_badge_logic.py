"""
Unit tests for badge set operations.
"""

from datetime import datetime, timezone

import pytest

from rpg_social.modules.badges.logic import has_badge, normalize_badge, with_badge
from rpg_social.modules.shared.exceptions import ValidationError

UNLOCKED_AT = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)


@pytest.mark.unit
class TestNormalizeBadge:
    def test_keeps_known_fields(self):
        badge = normalize_badge({"id": " early_bird ", "name": "Early Bird", "extra": 1})

        assert badge == {"id": "early_bird", "name": "Early Bird", "icon": "", "description": ""}

    @pytest.mark.parametrize(
        "payload",
        [None, "badge", {"name": "No Id"}, {"id": "no_name"}, {"id": "  ", "name": "Blank"}],
    )
    def test_rejects_malformed(self, payload):
        with pytest.raises(ValidationError):
            normalize_badge(payload)


@pytest.mark.unit
class TestWithBadge:
    def test_adds_stamped_copy(self):
        badges = [{"id": "a", "name": "A"}]

        updated = with_badge(badges, {"id": "b", "name": "B"}, UNLOCKED_AT)

        assert [badge["id"] for badge in updated] == ["a", "b"]
        assert updated[-1]["unlocked_at"] == UNLOCKED_AT.isoformat()
        assert badges == [{"id": "a", "name": "A"}]

    def test_duplicate_id_returns_none(self):
        badges = [{"id": "a", "name": "A"}]
        assert with_badge(badges, {"id": "a", "name": "Renamed"}, UNLOCKED_AT) is None

    def test_has_badge(self):
        assert has_badge([{"id": "a"}], "a")
        assert not has_badge([], "a")
