# deploy_orchestrator/core/state_machine.py
"""Deployment lifecycle state machine"""

import asyncio
import logging
import weakref
from datetime import datetime, timedelta
from typing import Callable, Dict, FrozenSet, Iterable, List, Optional, Tuple

from .approval_token import ApprovalTokenService, token_prefix
from .hooks import TransitionEvent
from ..api.exceptions import (
    ApprovalExpiredError,
    DeploymentNotFoundError,
    IllegalTransitionError,
    InvalidStateError,
    TokenNotFoundError,
)
from ..constants import (
    LOG_TAG,
    ACTIVE_STATUSES,
    DEFAULT_CANCEL_REASON,
    DEFAULT_REJECTION_REASON,
    DeploymentStatus,
)
from ..models.deployment import DeploymentRecord
from ..models.result import CreatedDeployment
from ..storage.base import StorageBackend
from ..utils.formatting import utcnow

logger = logging.getLogger(__name__)

Hook = Callable[[TransitionEvent], None]
Mutator = Callable[[DeploymentRecord, datetime], None]

_PENDING = frozenset({DeploymentStatus.PENDING_APPROVAL})

# event -> (allowed source statuses, target status)
TRANSITIONS: Dict[str, Tuple[FrozenSet[DeploymentStatus], DeploymentStatus]] = {
    "approve": (_PENDING, DeploymentStatus.QUEUED),
    "reject": (_PENDING, DeploymentStatus.REJECTED),
    "expire": (_PENDING, DeploymentStatus.EXPIRED),
    "start": (frozenset({DeploymentStatus.QUEUED}), DeploymentStatus.RUNNING),
    "succeed": (frozenset({DeploymentStatus.RUNNING}), DeploymentStatus.SUCCESS),
    "fail": (frozenset({DeploymentStatus.RUNNING}), DeploymentStatus.FAILED),
    "cancel": (frozenset(ACTIVE_STATUSES), DeploymentStatus.FAILED),
}


def can_transition(status: str, event: str) -> bool:
    """Check whether ``event`` is legal from ``status``"""
    rule = TRANSITIONS.get(event)
    return rule is not None and DeploymentStatus(status) in rule[0]


class StateMachine:
    """Owns every status change of a deployment record

    Transitions on one record are serialized by a per-record lock and a
    compare-and-set write, so two transitions never apply to the same id
    concurrently. Hooks run synchronously after the write; a failing hook is
    logged and does not undo the transition.
    """

    def __init__(self,
                 store: StorageBackend,
                 tokens: Optional[ApprovalTokenService] = None,
                 hooks: Optional[Iterable[Hook]] = None,
                 clock: Callable[[], datetime] = utcnow):
        self.store = store
        self.tokens = tokens or ApprovalTokenService()
        self.hooks: List[Hook] = list(hooks or [])
        self.clock = clock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def add_hook(self, hook: Hook) -> None:
        self.hooks.append(hook)

    def _lock_for(self, deployment_id: str) -> asyncio.Lock:
        lock = self._locks.get(deployment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[deployment_id] = lock
        return lock

    def _fire(self, event: TransitionEvent) -> None:
        for hook in self.hooks:
            try:
                hook(event)
            except Exception:
                logger.exception(
                    f"{LOG_TAG} Transition hook failed hook={type(hook).__name__} "
                    f"deployment_id={event.record.id} event={event.event}"
                )

    # Creation

    async def create(self,
                     record: DeploymentRecord,
                     requires_approval: bool = False,
                     approval_timeout_hours: float = 0) -> CreatedDeployment:
        """
        Persist a new record in its initial status

        Args:
            record: Unsaved record
            requires_approval: Whether the record waits for a human decision
            approval_timeout_hours: Approval window

        Returns:
            The stored record and, when approval is required, the plaintext
            token. The token is not retained anywhere else.
        """
        now = self.clock()
        token = None
        record.created_at = now

        if requires_approval:
            token = self.tokens.mint()
            record.status = DeploymentStatus.PENDING_APPROVAL.value
            record.approval_token_hash = self.tokens.digest(token)
            record.expires_at = now + timedelta(hours=approval_timeout_hours)
        else:
            record.status = DeploymentStatus.QUEUED.value
            record.queued_at = now

        stored = await self.store.add_deployment(record)
        self._fire(TransitionEvent(
            record=stored,
            event="create",
            previous_status=None,
            new_status=stored.status,
            approval_token=token,
        ))
        return CreatedDeployment(record=stored, approval_token=token)

    # Generic transition

    async def transition(self,
                         deployment_id: str,
                         event: str,
                         mutate: Optional[Mutator] = None) -> DeploymentRecord:
        """
        Apply one event from the transition table

        Args:
            deployment_id: Record id
            event: Event name
            mutate: Callback setting audit fields, called with the record and
                the transition time before the write

        Returns:
            Updated record

        Raises:
            DeploymentNotFoundError: If the record does not exist
            IllegalTransitionError: If the event is not legal from the
                current status; the record is left unchanged
        """
        async with self._lock_for(deployment_id):
            record = await self.store.get_deployment(deployment_id)
            if record is None:
                raise DeploymentNotFoundError(deployment_id)
            return await self._apply(record, event, mutate)

    async def _apply(self,
                     record: DeploymentRecord,
                     event: str,
                     mutate: Optional[Mutator] = None) -> DeploymentRecord:
        if not can_transition(record.status, event):
            raise IllegalTransitionError(record.id, record.status, event)

        previous = record.status
        now = self.clock()
        record.status = TRANSITIONS[event][1].value
        if mutate:
            mutate(record, now)

        stored = await self.store.update_deployment(record, expected_status=previous)
        self._fire(TransitionEvent(record=stored, event=event, previous_status=previous, new_status=stored.status))
        return stored

    # Approval

    async def _lookup_token(self, token: str) -> DeploymentRecord:
        if not self.tokens.is_well_formed(token):
            logger.warning(f"{LOG_TAG} Approval token rejected: malformed token_prefix={token_prefix(token)}")
            raise TokenNotFoundError(token_prefix(token))

        digest = self.tokens.digest(token)
        record = await self.store.find_by_token_hash(digest)
        if record is None or not self.tokens.verify(token, record.approval_token_hash):
            logger.warning(f"{LOG_TAG} Approval token rejected: unknown token_prefix={token_prefix(token)}")
            raise TokenNotFoundError(token_prefix(token))

        return record

    async def approve(self, token: str, approver: str) -> DeploymentRecord:
        """
        Approve a pending record by token

        Raises:
            TokenNotFoundError: Malformed or unknown token
            InvalidStateError: Record is not pending approval
            ApprovalExpiredError: Approval window has passed
        """
        found = await self._lookup_token(token)

        async with self._lock_for(found.id):
            record = await self.store.get_deployment(found.id)
            if record is None:
                raise TokenNotFoundError(token_prefix(token))
            if not record.is_pending_approval:
                raise InvalidStateError(record.id, record.status, "approved")
            if record.is_expired(self.clock()):
                logger.info(f"{LOG_TAG} Approval refused, window expired deployment_id={record.id}")
                raise ApprovalExpiredError(record.id)

            def mark_approved(r: DeploymentRecord, now: datetime) -> None:
                r.approved_by = approver
                r.approved_at = now
                r.queued_at = now

            return await self._apply(record, "approve", mark_approved)

    async def reject(self, token: str, rejecter: str, reason: Optional[str] = None) -> DeploymentRecord:
        """
        Reject a pending record by token

        A record whose window has passed but which has not been swept yet can
        still be rejected.

        Raises:
            TokenNotFoundError: Malformed or unknown token
            InvalidStateError: Record is not pending approval
        """
        found = await self._lookup_token(token)

        async with self._lock_for(found.id):
            record = await self.store.get_deployment(found.id)
            if record is None:
                raise TokenNotFoundError(token_prefix(token))
            if not record.is_pending_approval:
                raise InvalidStateError(record.id, record.status, "rejected")

            def mark_rejected(r: DeploymentRecord, now: datetime) -> None:
                r.rejected_by = rejecter
                r.rejected_at = now
                r.rejection_reason = reason or DEFAULT_REJECTION_REASON

            return await self._apply(record, "reject", mark_rejected)

    async def expire(self, deployment_id: str) -> Optional[DeploymentRecord]:
        """
        Expire a pending record whose window has passed

        Returns:
            The expired record, or None when it was no longer pending or its
            window is still open
        """
        async with self._lock_for(deployment_id):
            record = await self.store.get_deployment(deployment_id)
            if record is None or not record.is_pending_approval or not record.is_expired(self.clock()):
                return None

            def mark_expired(r: DeploymentRecord, now: datetime) -> None:
                r.completed_at = now

            return await self._apply(record, "expire", mark_expired)

    # Execution

    async def start(self, deployment_id: str) -> DeploymentRecord:
        def mark_started(r: DeploymentRecord, now: datetime) -> None:
            r.started_at = now

        return await self.transition(deployment_id, "start", mark_started)

    async def succeed(self,
                      deployment_id: str,
                      output: str,
                      exit_code: int = 0,
                      release_name: Optional[str] = None,
                      release_path: Optional[str] = None) -> DeploymentRecord:
        def mark_success(r: DeploymentRecord, now: datetime) -> None:
            _mark_completed(r, now, output, exit_code)
            if release_name:
                r.release_name = release_name
                r.release_path = release_path

        return await self.transition(deployment_id, "succeed", mark_success)

    async def fail(self,
                   deployment_id: str,
                   output: str,
                   exit_code: int,
                   release_name: Optional[str] = None,
                   release_path: Optional[str] = None) -> DeploymentRecord:
        def mark_failed(r: DeploymentRecord, now: datetime) -> None:
            _mark_completed(r, now, output, exit_code)
            if release_name:
                r.release_name = release_name
                r.release_path = release_path

        return await self.transition(deployment_id, "fail", mark_failed)

    async def cancel(self,
                     deployment_id: str,
                     reason: Optional[str] = None,
                     actor: str = "operator",
                     exit_code: Optional[int] = None) -> DeploymentRecord:
        """
        Force an active record to failed

        The previous status, reason and actor are appended to the output.
        """
        previous = None

        def mark_cancelled(r: DeploymentRecord, now: datetime) -> None:
            r.append_output(
                "\n\n--- CANCELLED ---\n"
                f"Reason: {reason or DEFAULT_CANCEL_REASON}\n"
                f"Cancelled by: {actor}\n"
                f"Previous status: {previous}\n"
            )
            r.metadata["cancelled_by"] = actor
            r.completed_at = now
            if exit_code is not None:
                r.exit_code = exit_code
            if r.started_at:
                r.duration_seconds = (now - r.started_at).total_seconds()

        async with self._lock_for(deployment_id):
            record = await self.store.get_deployment(deployment_id)
            if record is None:
                raise DeploymentNotFoundError(deployment_id)
            if not record.is_active:
                raise InvalidStateError(record.id, record.status, "cancelled")

            previous = record.status
            return await self._apply(record, "cancel", mark_cancelled)


def _mark_completed(record: DeploymentRecord, now: datetime, output: str, exit_code: int) -> None:
    record.output = output
    record.exit_code = exit_code
    record.completed_at = now
    if record.started_at:
        record.duration_seconds = (now - record.started_at).total_seconds()
