import time

import pytest

from app.core.errors import RefreshTokenNotFoundError
from app.repositories.refresh_token import RefreshTokenRepository
from app.services.refresh_token import REFRESH_TOKEN_LENGTH, RefreshTokenService

THIRTY_DAYS = 30 * 24 * 3600


async def test_create_issues_sixty_char_token(open_db, make_user):
    async with open_db() as db:
        user = await make_user(db)
        svc = RefreshTokenService(RefreshTokenRepository(db))

        before = int(time.time())
        issued = await svc.create(user.id, "10.0.0.1")

        assert len(issued.token) == REFRESH_TOKEN_LENGTH
        assert before + THIRTY_DAYS <= issued.expires_at <= int(time.time()) + THIRTY_DAYS

        record = await svc.repo.find_any(issued.token)
        assert record.user_id == user.id
        assert record.used_count == 0
        assert record.ip_address == "10.0.0.1"


async def test_rotate_rewrites_record_in_place(open_db, make_user):
    async with open_db() as db:
        user = await make_user(db)
        svc = RefreshTokenService(RefreshTokenRepository(db))
        issued = await svc.create(user.id, "10.0.0.1")
        record_id = (await svc.repo.find_any(issued.token)).id

        rotated = await svc.rotate(issued.token, "10.0.0.2")

        assert rotated.user_id == user.id
        assert rotated.used_count == 1
        assert rotated.token.token != issued.token
        assert len(rotated.token.token) == REFRESH_TOKEN_LENGTH

        record = await svc.repo.find_any(rotated.token.token)
        assert record.id == record_id
        assert record.ip_address == "10.0.0.2"
        assert await svc.repo.find_any(issued.token) is None


async def test_old_token_cannot_be_rotated_twice(open_db, make_user):
    async with open_db() as db:
        user = await make_user(db)
        svc = RefreshTokenService(RefreshTokenRepository(db))
        issued = await svc.create(user.id, "10.0.0.1")

        first = await svc.rotate(issued.token, "10.0.0.1")
        with pytest.raises(RefreshTokenNotFoundError):
            await svc.rotate(issued.token, "10.0.0.1")

        second = await svc.rotate(first.token.token, "10.0.0.1")
        assert second.used_count == 2


async def test_conditional_update_loses_against_earlier_rotation(open_db, make_user):
    async with open_db() as db:
        user = await make_user(db)
        repo = RefreshTokenRepository(db)
        svc = RefreshTokenService(repo)
        issued = await svc.create(user.id, "10.0.0.1")
        now = int(time.time())
        record = await repo.find_by_token(issued.token, now)

        assert await repo.rotate(record, issued.token, "A" * 60, now + 60, "10.0.0.1", now)
        # a second request still holding the old token value
        assert not await repo.rotate(record, issued.token, "B" * 60, now + 60, "10.0.0.1", now)
        assert (await repo.find_any("A" * 60)).used_count == 1


async def test_expired_token_is_treated_as_missing(open_db, make_user):
    async with open_db() as db:
        user = await make_user(db)
        past_clock = lambda: time.time() - 31 * 24 * 3600  # noqa: E731
        old_svc = RefreshTokenService(RefreshTokenRepository(db), clock=past_clock)
        issued = await old_svc.create(user.id, "10.0.0.1")

        svc = RefreshTokenService(RefreshTokenRepository(db))
        with pytest.raises(RefreshTokenNotFoundError):
            await svc.rotate(issued.token, "10.0.0.1")
        assert await svc.repo.find_any(issued.token) is not None


async def test_unknown_token_is_missing(open_db):
    async with open_db() as db:
        svc = RefreshTokenService(RefreshTokenRepository(db))
        with pytest.raises(RefreshTokenNotFoundError):
            await svc.rotate("x" * 60, "10.0.0.1")


async def test_revoke_all_expires_only_that_users_tokens(open_db, make_user):
    async with open_db() as db:
        alice = await make_user(db, email="alice@example.com")
        bob = await make_user(db, email="bob@example.com")
        svc = RefreshTokenService(RefreshTokenRepository(db))
        a1 = await svc.create(alice.id, "10.0.0.1")
        a2 = await svc.create(alice.id, "10.0.0.2")
        b1 = await svc.create(bob.id, "10.0.0.3")

        assert await svc.revoke_all(alice.id) == 2

        now = int(time.time()) + 1
        assert await svc.repo.find_by_token(a1.token, now) is None
        assert await svc.repo.find_by_token(a2.token, now) is None
        assert await svc.repo.find_by_token(b1.token, now) is not None


async def test_update_persists_modified_record(open_db, make_user):
    async with open_db() as db:
        user = await make_user(db)
        repo = RefreshTokenRepository(db)
        issued = await RefreshTokenService(repo).create(user.id, "10.0.0.1")

        record = await repo.find_any(issued.token)
        record.ip_address = "192.168.1.9"
        await repo.update(record)

        # force a reload from the database
        db.expire_all()
        stored = await repo.find_any(issued.token)
        assert stored.ip_address == "192.168.1.9"
