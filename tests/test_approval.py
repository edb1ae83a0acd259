"""Unit tests for the propose/approve workflow."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from gateway.core.errors import (
    SERVER_ERROR,
    UPSTREAM_AUTH_ERROR,
    ExecutionError,
    InternalError,
    ProposalNotFoundError,
    ToolNotFoundError,
)
from gateway.core.persistence.audit import AuditTrail
from gateway.core.proposals import ProposalStore
from gateway.core.safety.approval import ApprovalCoordinator
from gateway.tools.base import ToolCategory, ToolDefinition, ToolRegistry

TASK_ARGS = {"title": "T", "dueDateTime": "2026-02-18T17:00:00-05:00", "contactId": "C1"}


def write_tool(handler, name="tasks_create"):
    return ToolDefinition(
        name=name,
        description="Create a task",
        category=ToolCategory.WRITE,
        input_schema={"type": "object", "required": ["title", "dueDateTime"]},
        handler=handler,
        http_method="POST",
        endpoint="/contacts/{contactId}/tasks",
    )


@pytest.fixture
def handler():
    return AsyncMock(return_value={"task": {"id": "task-1"}})


@pytest.fixture
def audit():
    trail = MagicMock(spec=AuditTrail)
    trail.record = AsyncMock()
    return trail


@pytest.fixture
def store(clock):
    return ProposalStore(ttl_seconds=3, clock=clock)


@pytest.fixture
def coordinator(store, handler, audit):
    registry = ToolRegistry([write_tool(handler)], {"tasks_create"})
    return ApprovalCoordinator(store, registry, audit=audit)


@pytest.mark.asyncio
async def test_propose_projection_has_no_argument_values(coordinator):
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)

    projection = receipt.projection
    assert projection["status"] == "proposed"
    assert projection["proposal_id"] == receipt.proposal.proposal_id
    assert projection["tool"] == "tasks_create"
    assert projection["summary"] == "tasks_create (fields: contactId, dueDateTime, title)"
    assert projection["expires_at"].endswith("Z")
    assert set(projection) == {"status", "proposal_id", "tool", "params_hash", "summary", "expires_at"}
    assert "C1" not in str(projection)


@pytest.mark.asyncio
async def test_approve_executes_once(coordinator, handler, audit, store):
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)
    proposal_id = receipt.proposal.proposal_id

    result = await coordinator.resolve(proposal_id, True)

    assert result == {
        "status": "approved",
        "proposal_id": proposal_id,
        "result": {"task": {"id": "task-1"}},
    }
    handler.assert_awaited_once_with(TASK_ARGS)
    assert len(store) == 0

    audit.record.assert_awaited_once()
    args, kwargs = audit.record.call_args
    assert args == ("proposal_resolved",)
    assert kwargs["outcome"] == "success"
    assert kwargs["proposal_id"] == proposal_id
    assert kwargs["tool"] == "tasks_create"
    assert "C1" not in str(kwargs)

    with pytest.raises(ProposalNotFoundError):
        await coordinator.resolve(proposal_id, True)
    with pytest.raises(ProposalNotFoundError):
        await coordinator.resolve(proposal_id, False)
    assert handler.await_count == 1


@pytest.mark.asyncio
async def test_reject_never_executes(coordinator, handler, audit, store):
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)
    proposal_id = receipt.proposal.proposal_id

    result = await coordinator.resolve(proposal_id, False)

    assert result == {"status": "rejected", "proposal_id": proposal_id}
    handler.assert_not_awaited()
    assert await store.get(proposal_id) is None
    assert audit.record.call_args.kwargs["outcome"] == "rejected"


@pytest.mark.asyncio
async def test_non_boolean_approve_rejects(coordinator, handler):
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)

    result = await coordinator.resolve(receipt.proposal.proposal_id, "yes")

    assert result["status"] == "rejected"
    handler.assert_not_awaited()


@pytest.mark.asyncio
async def test_expired_before_sweep_reports_expired(coordinator, handler, audit, clock):
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)
    proposal_id = receipt.proposal.proposal_id
    clock.advance(3.5)

    result = await coordinator.resolve(proposal_id, True)

    assert result == {"status": "expired", "proposal_id": proposal_id}
    handler.assert_not_awaited()
    assert audit.record.call_args.kwargs["outcome"] == "expired"

    with pytest.raises(ProposalNotFoundError):
        await coordinator.resolve(proposal_id, True)


@pytest.mark.asyncio
async def test_expired_and_swept_is_not_found(coordinator, store, clock):
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)
    clock.advance(4)
    await store.sweep()

    with pytest.raises(ProposalNotFoundError) as exc_info:
        await coordinator.resolve(receipt.proposal.proposal_id, True)

    assert exc_info.value.message == "Proposal not found or expired"


@pytest.mark.asyncio
async def test_concurrent_approvals_execute_once(store, audit):
    started = asyncio.Event()
    release = asyncio.Event()

    async def slow_handler(args):
        started.set()
        await release.wait()
        return {"ok": True}

    handler = AsyncMock(side_effect=slow_handler)
    registry = ToolRegistry([write_tool(handler)], {"tasks_create"})
    coordinator = ApprovalCoordinator(store, registry, audit=audit)
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)
    proposal_id = receipt.proposal.proposal_id

    first = asyncio.create_task(coordinator.resolve(proposal_id, True))
    await started.wait()
    second = asyncio.create_task(coordinator.resolve(proposal_id, True))
    await asyncio.sleep(0)
    release.set()

    results = await asyncio.gather(first, second, return_exceptions=True)

    assert results[0]["status"] == "approved"
    assert isinstance(results[1], ProposalNotFoundError)
    assert handler.await_count == 1
    assert audit.record.await_count == 1


@pytest.mark.asyncio
async def test_gathered_approvals_execute_once(coordinator, handler):
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)
    proposal_id = receipt.proposal.proposal_id

    results = await asyncio.gather(
        coordinator.resolve(proposal_id, True),
        coordinator.resolve(proposal_id, True),
        return_exceptions=True,
    )

    assert sum(isinstance(r, dict) for r in results) == 1
    assert sum(isinstance(r, ProposalNotFoundError) for r in results) == 1
    assert handler.await_count == 1


@pytest.mark.asyncio
async def test_execution_error_carries_proposal_id(store, audit):
    handler = AsyncMock(side_effect=ExecutionError("Bad gateway", status=502, endpoint="/tasks"))
    registry = ToolRegistry([write_tool(handler)], {"tasks_create"})
    coordinator = ApprovalCoordinator(store, registry, audit=audit)
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)
    proposal_id = receipt.proposal.proposal_id

    with pytest.raises(ExecutionError) as exc_info:
        await coordinator.resolve(proposal_id, True)

    assert exc_info.value.data() == {"status": 502, "endpoint": "/tasks", "proposal_id": proposal_id}
    assert len(store) == 0
    assert audit.record.call_args.kwargs["outcome"] == "error"


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [400, 401, 403])
async def test_approved_execution_error_uses_server_error_code(store, audit, status):
    handler = AsyncMock(side_effect=ExecutionError("Upstream refused", status=status, endpoint="/tasks"))
    registry = ToolRegistry([write_tool(handler)], {"tasks_create"})
    coordinator = ApprovalCoordinator(store, registry, audit=audit)
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)

    with pytest.raises(ExecutionError) as exc_info:
        await coordinator.resolve(receipt.proposal.proposal_id, True)

    assert exc_info.value.code == SERVER_ERROR
    assert exc_info.value.data()["status"] == status


def test_direct_call_keeps_status_mapping():
    assert ExecutionError("Unauthorized", status=401, endpoint="/tasks").code == UPSTREAM_AUTH_ERROR


@pytest.mark.asyncio
async def test_unexpected_failure_becomes_internal_error(store, audit):
    handler = AsyncMock(side_effect=KeyError("id"))
    registry = ToolRegistry([write_tool(handler)], {"tasks_create"})
    coordinator = ApprovalCoordinator(store, registry, audit=audit)
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)

    with pytest.raises(InternalError) as exc_info:
        await coordinator.resolve(receipt.proposal.proposal_id, True)

    assert exc_info.value.data() == {"status": 500, "endpoint": "tasks_create"}
    assert len(store) == 0


@pytest.mark.asyncio
async def test_tool_removed_after_proposal(store, audit):
    registry = ToolRegistry([], {"tasks_create"})
    coordinator = ApprovalCoordinator(store, registry, audit=audit)
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)

    with pytest.raises(ToolNotFoundError) as exc_info:
        await coordinator.resolve(receipt.proposal.proposal_id, True)

    assert exc_info.value.message == "Tool no longer available"
    assert len(store) == 0


@pytest.mark.asyncio
async def test_dry_run_approval_reports_call(store, handler, audit):
    registry = ToolRegistry([write_tool(handler)], {"tasks_create"})
    coordinator = ApprovalCoordinator(store, registry, audit=audit, dry_run=True)
    receipt = await coordinator.propose("tasks_create", TASK_ARGS)
    proposal_id = receipt.proposal.proposal_id

    result = await coordinator.resolve(proposal_id, True)

    assert result == {
        "dryRun": True,
        "validated": True,
        "wouldCall": {"method": "POST", "endpoint": "/contacts/{contactId}/tasks"},
        "proposal_id": proposal_id,
    }
    handler.assert_not_awaited()
    assert len(store) == 0


@pytest.mark.asyncio
async def test_projections_redact_arguments(coordinator):
    receipt = await coordinator.propose(
        "tasks_create", {"title": "T", "dueDateTime": "x", "apiToken": "abc"}
    )
    proposal_id = receipt.proposal.proposal_id

    fetched = await coordinator.get_proposal(proposal_id)
    listed = await coordinator.list_proposals(limit=5)

    assert fetched["arguments"]["apiToken"] == "[REDACTED]"
    assert fetched["status"] == "pending"
    assert [p["proposal_id"] for p in listed] == [proposal_id]

    with pytest.raises(ProposalNotFoundError):
        await coordinator.get_proposal("unknown")
