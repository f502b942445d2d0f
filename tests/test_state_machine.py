"""
Unit tests for the deployment state machine.
"""

import pytest

from deploy_orchestrator.api.exceptions import (
    ApprovalExpiredError,
    DeploymentNotFoundError,
    IllegalTransitionError,
    InvalidStateError,
    TokenNotFoundError,
)
from deploy_orchestrator.constants import DeploymentStatus
from deploy_orchestrator.core.hooks import TransitionHook
from deploy_orchestrator.core.state_machine import StateMachine, can_transition

from conftest import make_record


class RecordingHook(TransitionHook):
    def __init__(self):
        self.events = []

    def __call__(self, event):
        self.events.append(event)


class ExplodingHook(TransitionHook):
    def __call__(self, event):
        raise RuntimeError("notifier down")


class TestTransitionTable:
    """Tests for the legal transition table."""

    @pytest.mark.parametrize("status,event", [
        ("pending_approval", "approve"),
        ("pending_approval", "reject"),
        ("pending_approval", "expire"),
        ("queued", "start"),
        ("running", "succeed"),
        ("running", "fail"),
        ("pending_approval", "cancel"),
        ("queued", "cancel"),
        ("running", "cancel"),
    ])
    def test_legal(self, status, event):
        assert can_transition(status, event)

    @pytest.mark.parametrize("status,event", [
        ("queued", "approve"),
        ("pending_approval", "start"),
        ("queued", "succeed"),
        ("success", "fail"),
        ("failed", "start"),
        ("rejected", "approve"),
        ("expired", "approve"),
        ("success", "cancel"),
        ("running", "unknown"),
    ])
    def test_illegal(self, status, event):
        assert not can_transition(status, event)


class TestCreate:
    """Tests for record creation."""

    @pytest.mark.asyncio
    async def test_queued_without_approval(self, state_machine, clock):
        created = await state_machine.create(make_record())

        assert created.approval_token is None
        assert created.record.status == DeploymentStatus.QUEUED.value
        assert created.record.queued_at == clock.now
        assert created.record.approval_token_hash is None

    @pytest.mark.asyncio
    async def test_pending_with_approval(self, state_machine, store, clock):
        created = await state_machine.create(make_record(trigger_name="production"), True, 2)

        stored = await store.get_deployment(created.record.id)
        assert stored.status == DeploymentStatus.PENDING_APPROVAL.value
        assert stored.expires_at == clock.advance(hours=2)
        assert stored.approval_token_hash
        assert created.approval_token not in stored.approval_token_hash
        assert created.approval_token not in str(stored.to_dict())

    @pytest.mark.asyncio
    async def test_create_hook_receives_token_once(self, store, tokens, clock):
        hook = RecordingHook()
        machine = StateMachine(store, tokens, hooks=[hook], clock=clock)

        created = await machine.create(make_record(), True, 1)
        await machine.reject(created.approval_token, "bob")

        assert [e.event for e in hook.events] == ["create", "reject"]
        assert hook.events[0].approval_token == created.approval_token
        assert hook.events[0].is_creation
        assert hook.events[1].approval_token is None
        assert hook.events[1].previous_status == "pending_approval"


class TestApproval:
    """Tests for approve and reject."""

    @pytest.mark.asyncio
    async def test_approve_queues(self, state_machine, clock):
        created = await state_machine.create(make_record(), True, 2)
        clock.advance(minutes=5)

        record = await state_machine.approve(created.approval_token, "alice")

        assert record.status == DeploymentStatus.QUEUED.value
        assert record.approved_by == "alice"
        assert record.approved_at == clock.now
        assert record.queued_at == clock.now

    @pytest.mark.asyncio
    async def test_second_approval_is_wrong_status(self, state_machine):
        created = await state_machine.create(make_record(), True, 2)
        await state_machine.approve(created.approval_token, "alice")

        with pytest.raises(InvalidStateError) as exc_info:
            await state_machine.approve(created.approval_token, "bob")

        assert exc_info.value.reason == "wrong_status"

    @pytest.mark.asyncio
    async def test_unknown_token(self, state_machine, tokens):
        await state_machine.create(make_record(), True, 2)

        with pytest.raises(TokenNotFoundError) as exc_info:
            await state_machine.approve(tokens.mint(), "alice")

        assert exc_info.value.reason == "not_found"

    @pytest.mark.asyncio
    async def test_malformed_token(self, state_machine):
        with pytest.raises(TokenNotFoundError):
            await state_machine.approve("not-a-token", "alice")

    @pytest.mark.asyncio
    async def test_approve_after_window(self, state_machine, store, clock):
        created = await state_machine.create(make_record(), True, 2)
        clock.advance(hours=2, seconds=1)

        with pytest.raises(ApprovalExpiredError) as exc_info:
            await state_machine.approve(created.approval_token, "alice")

        assert exc_info.value.reason == "expired"
        stored = await store.get_deployment(created.record.id)
        assert stored.status == DeploymentStatus.PENDING_APPROVAL.value

    @pytest.mark.asyncio
    async def test_approve_exactly_at_expiry(self, state_machine, clock):
        created = await state_machine.create(make_record(), True, 2)
        clock.advance(hours=2)

        record = await state_machine.approve(created.approval_token, "alice")

        assert record.status == DeploymentStatus.QUEUED.value

    @pytest.mark.asyncio
    async def test_reject_default_reason(self, state_machine, clock):
        created = await state_machine.create(make_record(), True, 2)

        record = await state_machine.reject(created.approval_token, "bob")

        assert record.status == DeploymentStatus.REJECTED.value
        assert record.rejected_by == "bob"
        assert record.rejected_at == clock.now
        assert record.rejection_reason == "Rejected via web interface"

    @pytest.mark.asyncio
    async def test_reject_then_approve(self, state_machine):
        created = await state_machine.create(make_record(), True, 2)
        await state_machine.reject(created.approval_token, "bob", "not today")

        with pytest.raises(InvalidStateError):
            await state_machine.approve(created.approval_token, "alice")


class TestExpire:
    """Tests for the expiry sweep transition."""

    @pytest.mark.asyncio
    async def test_expire_once(self, store, tokens, clock):
        hook = RecordingHook()
        machine = StateMachine(store, tokens, hooks=[hook], clock=clock)
        created = await machine.create(make_record(), True, 2)
        clock.advance(hours=3)

        first = await machine.expire(created.record.id)
        second = await machine.expire(created.record.id)

        assert first.status == DeploymentStatus.EXPIRED.value
        assert second is None
        assert [e.event for e in hook.events].count("expire") == 1

    @pytest.mark.asyncio
    async def test_window_still_open(self, state_machine, clock):
        created = await state_machine.create(make_record(), True, 2)
        clock.advance(hours=1)

        assert await state_machine.expire(created.record.id) is None

    @pytest.mark.asyncio
    async def test_expired_cannot_be_approved(self, state_machine, clock):
        created = await state_machine.create(make_record(), True, 2)
        clock.advance(hours=3)
        await state_machine.expire(created.record.id)

        with pytest.raises(InvalidStateError):
            await state_machine.approve(created.approval_token, "alice")


class TestExecution:
    """Tests for start, succeed, fail and cancel."""

    @pytest.mark.asyncio
    async def test_run_to_success(self, state_machine, clock):
        created = await state_machine.create(make_record())

        started = await state_machine.start(created.record.id)
        clock.advance(seconds=192)
        finished = await state_machine.succeed(created.record.id, "done", 0)

        assert started.status == DeploymentStatus.RUNNING.value
        assert finished.status == DeploymentStatus.SUCCESS.value
        assert finished.duration_seconds == 192
        assert finished.duration_for_humans == "3m 12s"
        assert finished.output == "done"

    @pytest.mark.asyncio
    async def test_illegal_transition_leaves_record(self, state_machine, store):
        created = await state_machine.create(make_record(), True, 2)

        with pytest.raises(IllegalTransitionError):
            await state_machine.start(created.record.id)

        stored = await store.get_deployment(created.record.id)
        assert stored.status == DeploymentStatus.PENDING_APPROVAL.value

    @pytest.mark.asyncio
    async def test_finish_twice(self, state_machine):
        created = await state_machine.create(make_record())
        await state_machine.start(created.record.id)
        await state_machine.fail(created.record.id, "boom", 2)

        with pytest.raises(IllegalTransitionError):
            await state_machine.succeed(created.record.id, "late", 0)

    @pytest.mark.asyncio
    async def test_unknown_record(self, state_machine):
        with pytest.raises(DeploymentNotFoundError):
            await state_machine.start("missing")

    @pytest.mark.asyncio
    async def test_cancel_running(self, state_machine):
        created = await state_machine.create(make_record())
        await state_machine.start(created.record.id)

        record = await state_machine.cancel(created.record.id, "stuck", actor="carol")

        assert record.status == DeploymentStatus.FAILED.value
        assert "--- CANCELLED ---" in record.output
        assert "Reason: stuck" in record.output
        assert "Cancelled by: carol" in record.output
        assert "Previous status: running" in record.output
        assert record.metadata["cancelled_by"] == "carol"

    @pytest.mark.asyncio
    async def test_cancel_pending(self, state_machine):
        created = await state_machine.create(make_record(), True, 2)

        record = await state_machine.cancel(created.record.id)

        assert record.status == DeploymentStatus.FAILED.value
        assert "Reason: Manually cancelled" in record.output
        assert "Previous status: pending_approval" in record.output

    @pytest.mark.asyncio
    async def test_cancel_terminal(self, state_machine):
        created = await state_machine.create(make_record())
        await state_machine.start(created.record.id)
        await state_machine.succeed(created.record.id, "ok")

        with pytest.raises(InvalidStateError):
            await state_machine.cancel(created.record.id)

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_undo(self, store, tokens, clock):
        machine = StateMachine(store, tokens, hooks=[ExplodingHook()], clock=clock)

        created = await machine.create(make_record())
        started = await machine.start(created.record.id)

        assert started.status == DeploymentStatus.RUNNING.value
