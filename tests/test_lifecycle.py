"""
Tests for foreground revalidation.
"""

import time
from unittest.mock import AsyncMock, MagicMock

import pytest

from bookshelf_client.lifecycle import AppLifecycle, ForegroundRevalidator
from bookshelf_client.models import SessionState
from bookshelf_client.services import AsyncRunner


@pytest.fixture
def fake_session():
    session = MagicMock()
    session.revalidate = AsyncMock()
    return session


@pytest.mark.asyncio
async def test_returning_to_foreground_revalidates(fake_session):
    revalidator = ForegroundRevalidator(fake_session)

    assert revalidator.on_lifecycle_change(AppLifecycle.BACKGROUND) is False
    assert revalidator.on_lifecycle_change(AppLifecycle.ACTIVE) is True
    await revalidator.wait_pending()

    fake_session.revalidate.assert_awaited_once()


@pytest.mark.asyncio
async def test_inactive_to_active_also_revalidates(fake_session):
    revalidator = ForegroundRevalidator(fake_session)

    revalidator.on_lifecycle_change(AppLifecycle.INACTIVE)
    revalidator.on_lifecycle_change(AppLifecycle.ACTIVE)
    await revalidator.wait_pending()

    fake_session.revalidate.assert_awaited_once()


@pytest.mark.asyncio
async def test_no_action_while_staying_active_or_backgrounding(fake_session):
    revalidator = ForegroundRevalidator(fake_session)

    revalidator.on_lifecycle_change(AppLifecycle.ACTIVE)
    revalidator.on_lifecycle_change(AppLifecycle.BACKGROUND)
    revalidator.on_lifecycle_change(AppLifecycle.BACKGROUND)
    await revalidator.wait_pending()

    fake_session.revalidate.assert_not_awaited()
    assert revalidator.current_state is AppLifecycle.BACKGROUND


@pytest.mark.asyncio
async def test_flapping_schedules_one_revalidation_per_foreground(fake_session):
    revalidator = ForegroundRevalidator(fake_session)

    for _ in range(3):
        revalidator.on_lifecycle_change(AppLifecycle.BACKGROUND)
        revalidator.on_lifecycle_change(AppLifecycle.ACTIVE)
    await revalidator.wait_pending()

    assert fake_session.revalidate.await_count == 3


@pytest.mark.asyncio
async def test_failed_revalidation_is_logged_not_raised(fake_session, caplog):
    fake_session.revalidate.side_effect = RuntimeError("boom")
    revalidator = ForegroundRevalidator(fake_session)

    revalidator.on_lifecycle_change(AppLifecycle.BACKGROUND)
    revalidator.on_lifecycle_change(AppLifecycle.ACTIVE)
    await revalidator.wait_pending()

    assert "Foreground revalidation failed" in caplog.text


@pytest.mark.asyncio
async def test_foreground_with_revoked_session_signs_out(session, store, auth_api):
    auth_api.login.return_value = "tok123"
    await session.login("user@example.com", "secret1")
    assert session.state is SessionState.AUTHENTICATED
    auth_api.status.return_value = False
    revalidator = ForegroundRevalidator(session)

    revalidator.on_lifecycle_change(AppLifecycle.BACKGROUND)
    revalidator.on_lifecycle_change(AppLifecycle.ACTIVE)
    await revalidator.wait_pending()

    assert session.state is SessionState.UNAUTHENTICATED
    assert await store.get_token() is None


def test_requires_a_loop_when_called_outside_one(fake_session):
    revalidator = ForegroundRevalidator(fake_session, initial_state=AppLifecycle.BACKGROUND)

    with pytest.raises(RuntimeError):
        revalidator.on_lifecycle_change(AppLifecycle.ACTIVE)


def test_schedules_onto_loop_from_another_thread(fake_session):
    runner = AsyncRunner()
    runner.start()
    try:
        revalidator = ForegroundRevalidator(fake_session, loop=runner.loop)

        revalidator.on_lifecycle_change(AppLifecycle.BACKGROUND)
        assert revalidator.on_lifecycle_change(AppLifecycle.ACTIVE) is True

        deadline = time.monotonic() + 2.0
        while not fake_session.revalidate.await_count and time.monotonic() < deadline:
            time.sleep(0.01)
    finally:
        runner.stop()

    fake_session.revalidate.assert_awaited_once()
