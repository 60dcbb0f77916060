# Copyright (c) 2025 Alexandre Tavares
# Licensed under the Creative Commons Attribution-NonCommercial 4.0 International (CC BY-NC 4.0)
# See the LICENSE file in the project root for more information.
from datetime import datetime, timedelta, timezone
from app.core.security import hash_password, new_invite_code, verify_password
from app.services.crm import mention_targets
from app.services.teams import (
    INVITE_EXPIRED,
    INVITE_INACTIVE,
    INVITE_NOT_FOUND,
    INVITE_USED_UP,
    invite_problem,
)

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _invite(**overrides):
    invite = {"id": "i1", "is_active": True, "expires_at": None, "max_uses": None, "use_count": 0}
    invite.update(overrides)
    return invite


class TestInviteProblem:
    def test_valid(self):
        assert invite_problem(_invite(), NOW) is None
        assert invite_problem(_invite(max_uses=2, use_count=1, expires_at=NOW + timedelta(days=1)), NOW) is None

    def test_missing(self):
        assert invite_problem(None, NOW) == INVITE_NOT_FOUND

    def test_inactive(self):
        assert invite_problem(_invite(is_active=False), NOW) == INVITE_INACTIVE

    def test_expired(self):
        assert invite_problem(_invite(expires_at=NOW - timedelta(seconds=1)), NOW) == INVITE_EXPIRED
        assert invite_problem(_invite(expires_at="2025-05-01 00:00:00.000000+00:00"), NOW) == INVITE_EXPIRED

    def test_used_up(self):
        assert invite_problem(_invite(max_uses=3, use_count=3), NOW) == INVITE_USED_UP


class TestMentionTargets:
    def test_filters_author_unknown_and_duplicates(self):
        assert mention_targets(["u2", "u1", "ghost", "u2", "u3"], "u1", ["u1", "u2", "u3"]) == ["u2", "u3"]

    def test_empty(self):
        assert mention_targets([], "u1", ["u1"]) == []


class TestSecurity:
    def test_password_roundtrip(self):
        hashed = hash_password("s3nha-forte")
        assert hashed != "s3nha-forte"
        assert verify_password("s3nha-forte", hashed)
        assert not verify_password("errada", hashed)
        assert not verify_password("s3nha-forte", "")

    def test_invite_code(self):
        code = new_invite_code()
        assert len(code) == 32
        assert code != new_invite_code()
