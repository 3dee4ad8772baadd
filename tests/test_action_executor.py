"""
Tests for the action executor.
"""

import httpx
import pytest

from core.action_executor import ActionExecutor
from database.actions import create_action, find_action, update_params, update_status
from utils.errors import (
    ActionForbiddenError,
    ActionNotFoundError,
    ActionStateError,
    AgentServiceError,
    AgentUnavailableError,
)


@pytest.fixture
def executor(agent_client) -> ActionExecutor:
    return ActionExecutor(agent_client)


async def _pending(session, user_id=1):
    return await create_action(
        session,
        user_id=user_id,
        source_platform="slack",
        source_channel="C1",
        source_context="Can someone file a ticket for the login bug?",
        suggested_tool="jira.createIssue",
        suggested_params={"summary": "Login bug"},
        description="Create Jira issue",
    )


class TestPreconditions:
    @pytest.mark.asyncio
    async def test_missing_action(self, executor, agent_stub, session):
        with pytest.raises(ActionNotFoundError):
            await executor.execute(session, 1, 999)
        assert agent_stub.requests == []

    @pytest.mark.asyncio
    async def test_other_users_action(self, executor, agent_stub, session):
        action = await _pending(session, user_id=1)
        with pytest.raises(ActionForbiddenError):
            await executor.execute(session, 2, action.id)

        assert agent_stub.requests == []
        assert (await find_action(session, action.id)).status == "pending"

    @pytest.mark.asyncio
    async def test_already_executed_is_refused(self, executor, agent_stub, session):
        action = await _pending(session)
        await update_status(session, action.id, "executed", {"issueKey": "PROJ-1"})

        with pytest.raises(ActionStateError):
            await executor.execute(session, 1, action.id)
        assert agent_stub.requests == []


class TestDispatch:
    @pytest.mark.asyncio
    async def test_success_marks_executed(self, executor, agent_stub, session):
        agent_stub.reply("/execute-action", {"issueKey": "PROJ-42", "url": "https://jira/PROJ-42"})
        action = await _pending(session)

        outcome = await executor.execute(session, 1, action.id)

        assert outcome == {
            "success": True,
            "result": {"issueKey": "PROJ-42", "url": "https://jira/PROJ-42"},
        }
        stored = await find_action(session, action.id)
        assert stored.status == "executed"
        assert stored.executed_at is not None
        assert stored.execution_result == {"issueKey": "PROJ-42", "url": "https://jira/PROJ-42"}
        assert agent_stub.calls_to("/execute-action") == [
            {"user_id": 1, "tool": "jira.createIssue", "parameters": {"summary": "Login bug"}}
        ]

    @pytest.mark.asyncio
    async def test_edited_params_take_precedence(self, executor, agent_stub, session):
        agent_stub.reply("/execute-action", {"ok": True})
        action = await _pending(session)
        await update_params(session, action.id, {"summary": "Login bug (SSO)", "priority": "High"})

        await executor.execute(session, 1, action.id)

        sent = agent_stub.calls_to("/execute-action")[0]
        assert sent["parameters"] == {"summary": "Login bug (SSO)", "priority": "High"}

    @pytest.mark.asyncio
    async def test_failure_surfaces_detail_and_keeps_pending(self, executor, agent_stub, session):
        agent_stub.reply("/execute-action", {"detail": "Jira project not found"}, status_code=400)
        action = await _pending(session)

        with pytest.raises(AgentServiceError) as exc_info:
            await executor.execute(session, 1, action.id)

        assert exc_info.value.detail == "Jira project not found"
        stored = await find_action(session, action.id)
        assert stored.status == "pending"
        assert stored.execution_result is None
        assert stored.executed_at is None

    @pytest.mark.asyncio
    async def test_unreachable_agent_is_not_swallowed(self, session):
        def refuse(request):
            raise httpx.ConnectError("Connection refused", request=request)

        from core.agent_client import AgentClient

        executor = ActionExecutor(
            AgentClient("http://agent.test", transport=httpx.MockTransport(refuse))
        )
        action = await _pending(session)

        with pytest.raises(AgentUnavailableError):
            await executor.execute(session, 1, action.id)
        assert (await find_action(session, action.id)).status == "pending"

    @pytest.mark.asyncio
    async def test_retry_after_failure(self, executor, agent_stub, session):
        action = await _pending(session)
        agent_stub.reply("/execute-action", {"detail": "rate limited"}, status_code=429)
        with pytest.raises(AgentServiceError):
            await executor.execute(session, 1, action.id)

        agent_stub.reply("/execute-action", {"issueKey": "PROJ-7"})
        outcome = await executor.execute(session, 1, action.id)
        assert outcome["result"] == {"issueKey": "PROJ-7"}
