"""
Tests for the suggested-action store.
"""

from datetime import datetime, timedelta, timezone

import pytest

from database.actions import (
    count_pending,
    create_action,
    create_actions,
    expire_old_actions,
    find_action,
    list_actions,
    update_params,
    update_status,
)
from utils.errors import ActionStateError
from utils.schemas import ActionDraft


async def _login_bug_action(session, user_id=1, **overrides):
    fields = dict(
        user_id=user_id,
        source_platform="slack",
        source_channel="C1",
        source_context="Can someone file a ticket for the login bug?",
        suggested_tool="jira.createIssue",
        suggested_params={"summary": "Login bug"},
        description="Create Jira issue",
    )
    fields.update(overrides)
    return await create_action(session, **fields)


class TestCreate:
    @pytest.mark.asyncio
    async def test_new_action_is_pending(self, session):
        action = await _login_bug_action(session)

        assert action.id is not None
        assert action.status == "pending"
        assert action.edited_params is None
        assert action.execution_result is None
        assert action.executed_at is None
        assert action.suggested_params == {"summary": "Login bug"}

    @pytest.mark.asyncio
    async def test_source_context_is_truncated(self, session):
        action = await _login_bug_action(session, source_context="x" * 2000)
        assert len(action.source_context) == 500

    @pytest.mark.asyncio
    async def test_create_many_keeps_input_order(self, session):
        drafts = [
            ActionDraft(
                user_id=7,
                source_platform="slack",
                source_channel="C9",
                source_context="ctx",
                suggested_tool=f"tool.{i}",
                suggested_params={"i": i},
                description=f"step {i}",
            )
            for i in range(3)
        ]
        rows = await create_actions(session, drafts)

        assert len(rows) == 3
        assert [r.suggested_tool for r in rows] == ["tool.0", "tool.1", "tool.2"]
        assert all(r.status == "pending" for r in rows)
        assert await count_pending(session, 7) == 3

    @pytest.mark.asyncio
    async def test_create_many_empty(self, session):
        assert await create_actions(session, []) == []


class TestRead:
    @pytest.mark.asyncio
    async def test_find_missing_returns_none(self, session):
        assert await find_action(session, 999) is None

    @pytest.mark.asyncio
    async def test_find_and_list_agree(self, session):
        action = await _login_bug_action(session)
        found = await find_action(session, action.id)
        listed = await list_actions(session, 1)

        assert len(listed) == 1
        for field in ("id", "status", "suggested_tool", "suggested_params", "source_context"):
            assert getattr(found, field) == getattr(listed[0], field)

    @pytest.mark.asyncio
    async def test_list_newest_first_with_filter_and_limit(self, session):
        first = await _login_bug_action(session, suggested_tool="a")
        second = await _login_bug_action(session, suggested_tool="b")
        third = await _login_bug_action(session, suggested_tool="c")
        await _login_bug_action(session, user_id=2, suggested_tool="other-user")
        await update_status(session, second.id, "rejected")

        assert [a.id for a in await list_actions(session, 1)] == [third.id, second.id, first.id]
        assert [a.id for a in await list_actions(session, 1, "pending")] == [third.id, first.id]
        assert [a.id for a in await list_actions(session, 1, limit=1)] == [third.id]

    @pytest.mark.asyncio
    async def test_pending_count_ignores_other_statuses(self, session):
        a = await _login_bug_action(session)
        await _login_bug_action(session)
        await update_status(session, a.id, "rejected")
        assert await count_pending(session, 1) == 1
        assert await count_pending(session, 2) == 0


class TestMutations:
    @pytest.mark.asyncio
    async def test_structured_params_survive_storage(self, session):
        edited = {"summary": "Login bug", "labels": ["auth", "p1"], "meta": {"points": 3}}
        action = await _login_bug_action(session)
        action_id = action.id
        assert await update_params(session, action_id, edited) is True

        await session.commit()
        session.expire_all()
        reloaded = await find_action(session, action_id)

        assert reloaded.edited_params == edited
        assert reloaded.suggested_params == {"summary": "Login bug"}
        assert reloaded.resolved_params == edited

    @pytest.mark.asyncio
    async def test_update_params_on_missing_action_is_silent(self, session):
        assert await update_params(session, 12345, {"x": 1}) is False

    @pytest.mark.asyncio
    async def test_update_params_ignored_after_pending(self, session):
        action = await _login_bug_action(session)
        await update_status(session, action.id, "rejected")
        assert await update_params(session, action.id, {"x": 1}) is False
        assert (await find_action(session, action.id)).edited_params is None

    @pytest.mark.asyncio
    async def test_executed_stamps_time_and_result(self, session):
        action = await _login_bug_action(session)
        await update_status(session, action.id, "executed", {"issueKey": "PROJ-42"})

        found = await find_action(session, action.id)
        assert found.status == "executed"
        assert found.executed_at is not None
        assert found.execution_result == {"issueKey": "PROJ-42"}

    @pytest.mark.asyncio
    async def test_reject_leaves_outcome_unset(self, session):
        action = await _login_bug_action(session)
        await update_status(session, action.id, "rejected")

        found = await find_action(session, action.id)
        assert found.status == "rejected"
        assert found.executed_at is None
        assert found.execution_result is None

    @pytest.mark.asyncio
    async def test_transitions_are_one_way(self, session):
        action = await _login_bug_action(session)
        await update_status(session, action.id, "executed", {"ok": True})

        with pytest.raises(ActionStateError):
            await update_status(session, action.id, "rejected")
        assert (await find_action(session, action.id)).execution_result == {"ok": True}

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self, session):
        action = await _login_bug_action(session)
        with pytest.raises(ValueError):
            await update_status(session, action.id, "approved")

    @pytest.mark.asyncio
    async def test_update_status_missing_action(self, session):
        assert await update_status(session, 4242, "rejected") is False


class TestExpiry:
    @pytest.mark.asyncio
    async def test_expire_only_old_pending(self, session):
        now = datetime.now(timezone.utc)
        stale = await _login_bug_action(session)
        fresh = await _login_bug_action(session)
        stale_done = await _login_bug_action(session)
        stale.created_at = now - timedelta(hours=30)
        fresh.created_at = now - timedelta(hours=1)
        stale_done.created_at = now - timedelta(hours=30)
        await session.flush()
        await update_status(session, stale_done.id, "rejected")

        expired = await expire_old_actions(session, 24)

        assert expired == 1
        assert (await find_action(session, stale.id)).status == "expired"
        assert (await find_action(session, fresh.id)).status == "pending"
        assert (await find_action(session, stale_done.id)).status == "rejected"

    @pytest.mark.asyncio
    async def test_second_sweep_expires_nothing(self, session):
        stale = await _login_bug_action(session)
        stale.created_at = datetime.now(timezone.utc) - timedelta(hours=30)
        await session.flush()

        assert await expire_old_actions(session, 24) == 1
        assert await expire_old_actions(session, 24) == 0
        assert await count_pending(session, 1) == 0
