"""Orchestrator API for deployment operations"""

import json
import logging
from datetime import datetime, timedelta
from pathlib import Path
from typing import Callable, Dict, List, Optional, Union, Any

from .exceptions import (
    ApprovalError,
    DeploymentConflictError,
    DeploymentNotFoundError,
    DuplicateDeliveryError,
    OrchestratorError,
    SignatureError,
    TriggerNotFoundError,
)
from ..constants import (
    LOG_TAG,
    DeploymentStatus,
    TriggerType,
    ACTIVE_STATUSES,
    ADVANCED_ROLLBACK_STORY,
    DEFAULT_RECORD_RETENTION_DAYS,
    RESCUE_GRACE_SECONDS,
    ROLLBACK_STORY,
    ROLLBACK_TRIGGER_NAME,
    TIMEOUT_EXIT_CODE,
)
from ..core.app_registry import AppRegistry
from ..core.approval_token import ApprovalTokenService
from ..core.concurrency import ConcurrencyGuard
from ..core.dispatcher import Dispatcher
from ..core.hooks import LoggingHook, LogNotifier, NotificationHook, Notifier
from ..core.state_machine import StateMachine
from ..deployers.advanced import AdvancedDeployer
from ..deployers.factory import DeployerFactory
from ..models.config import AppConfig, OrchestratorConfig, Trigger
from ..models.deployment import DeploymentRecord
from ..models.event import InboundEvent
from ..models.release import ReleaseInfo
from ..models.result import ApprovalOutcome, CleanupResult, CreatedDeployment, EventOutcome
from ..runner.base import ProcessRunner
from ..runner.subprocess_runner import SubprocessRunner
from ..services.config_service import ConfigService
from ..services.webhook_service import parse_github_event, verify_github_signature
from ..storage.base import StorageBackend
from ..storage.factory import StorageFactory
from ..utils.formatting import utcnow

logger = logging.getLogger(__name__)


class Orchestrator:
    """Entry point wiring registry, state machine, guard and dispatcher

    Every operation is a coroutine; synchronous callers go through
    :func:`deploy_orchestrator.utils.run_async`.
    """

    def __init__(self,
                 config: Optional[OrchestratorConfig] = None,
                 store: Optional[StorageBackend] = None,
                 runner: Optional[ProcessRunner] = None,
                 registry: Optional[AppRegistry] = None,
                 notifiers: Optional[Dict[str, Notifier]] = None,
                 clock: Callable[[], datetime] = utcnow):
        """
        Initialize orchestrator

        Args:
            config: Complete configuration
            store: Persistence backend, defaults to the configured one
            runner: Story runner, defaults to a subprocess runner
            registry: App registry, defaults to one built from ``config.apps``
            notifiers: Notifier per channel name
            clock: Time source
        """
        self.config = config or OrchestratorConfig()
        self.clock = clock
        self.registry = registry or AppRegistry.from_config(self.config.apps)
        self.store = store or StorageFactory.create_from_config(self.config.storage)
        self.runner = runner or SubprocessRunner(self.config.runner)

        self.tokens = ApprovalTokenService(
            secret=self.config.approval.secret,
            token_length=self.config.approval.token_length,
        )
        self.state_machine = StateMachine(self.store, self.tokens, clock=clock)
        self.state_machine.add_hook(LoggingHook())
        self.state_machine.add_hook(NotificationHook(
            notifiers if notifiers is not None else self._default_notifiers(),
            app_routes={app.key: app.notifications for app in self.registry.apps},
            global_routes=self.config.notifications,
            approval=self.config.approval,
        ))

        self.guard = ConcurrencyGuard(self.store)
        self.deployers = DeployerFactory(self.runner, self.store, timeout=self.config.runner.timeout, clock=clock)
        self.dispatcher = Dispatcher(
            self.registry,
            self.state_machine,
            self.guard,
            self.deployers,
            config=self.config.dispatch,
            runner_timeout=self.config.runner.timeout,
        )

    @classmethod
    def from_file(cls, config_path: Union[str, Path, None] = None, **kwargs) -> 'Orchestrator':
        """Build an orchestrator from a YAML configuration file"""
        return cls(ConfigService(config_path).load_config(), **kwargs)

    def _default_notifiers(self) -> Dict[str, Notifier]:
        channels = set(self.config.notifications)
        for app in self.registry.apps:
            channels.update(app.notifications)
        return {channel: LogNotifier() for channel in channels}

    # Creation

    async def _create(self,
                      app: AppConfig,
                      trigger_name: str,
                      record: DeploymentRecord,
                      requires_approval: bool = False,
                      approval_timeout: float = 0,
                      dispatch: bool = True) -> CreatedDeployment:
        async with self.guard.claim(app.key, trigger_name):
            created = await self.state_machine.create(record, requires_approval, approval_timeout)

        if dispatch and not created.requires_approval:
            self.dispatcher.submit(created.record.id)
        return created

    def _new_record(self, app: AppConfig, trigger: Trigger, trigger_type: str, **fields) -> DeploymentRecord:
        return DeploymentRecord(
            app_key=app.key,
            app_name=app.name,
            trigger_name=trigger.name,
            trigger_type=trigger_type,
            strategy=app.strategy,
            story=app.story_for(trigger),
            repository=app.repository,
            **fields,
        )

    async def handle_event(self, event: InboundEvent, dispatch: bool = True) -> List[EventOutcome]:
        """
        Create deployments for every (app, trigger) an event matches

        Conflicts and re-deliveries are reported per match, never raised.

        Args:
            event: Inbound event
            dispatch: Whether auto-deploy records are submitted right away

        Returns:
            One outcome per matched (app, trigger)
        """
        matches = self.registry.find_matching_triggers(event.event_kind, event.ref, event.repository)
        if not matches:
            logger.info(
                f"{LOG_TAG} No matching triggers event={event.event_kind} ref={event.ref} "
                f"repository={event.repository}"
            )
            return []

        outcomes = []
        for app, trigger in matches:
            delivery_key = None
            if event.delivery_id:
                delivery_key = event.delivery_id if len(matches) == 1 else f"{event.delivery_id}:{app.key}:{trigger.name}"
                existing = await self.store.find_by_delivery_id(delivery_key)
                if existing is not None:
                    logger.info(f"{LOG_TAG} Duplicate delivery ignored delivery_id={delivery_key} existing={existing.id}")
                    outcomes.append(EventOutcome(app.key, trigger.name, skipped_reason="duplicate", blocking_id=existing.id))
                    continue

            record = self._new_record(
                app,
                trigger,
                event.event_kind,
                trigger_ref=event.ref,
                commit_sha=event.commit_sha,
                commit_message=event.commit_message,
                author=event.author,
                delivery_id=delivery_key,
                payload=dict(event.payload),
            )
            if event.repository:
                record.repository = event.repository

            try:
                created = await self._create(
                    app,
                    trigger.name,
                    record,
                    requires_approval=trigger.requires_approval,
                    approval_timeout=trigger.approval_timeout,
                    dispatch=dispatch,
                )
            except DeploymentConflictError as e:
                outcomes.append(EventOutcome(app.key, trigger.name, skipped_reason="conflict", blocking_id=e.active_id))
                continue
            except DuplicateDeliveryError as e:
                logger.info(f"{LOG_TAG} Duplicate delivery ignored delivery_id={e.delivery_id} existing={e.existing_id}")
                outcomes.append(EventOutcome(app.key, trigger.name, skipped_reason="duplicate", blocking_id=e.existing_id))
                continue

            logger.info(
                f"{LOG_TAG} Deployment created deployment_id={created.record.id} app={app.key} "
                f"trigger={trigger.name} status={created.record.status}"
            )
            outcomes.append(EventOutcome(app.key, trigger.name, created=created))

        return outcomes

    async def handle_github(self,
                            event_type: str,
                            body: bytes,
                            signature: Optional[str] = None,
                            delivery_id: Optional[str] = None,
                            dispatch: bool = True) -> List[EventOutcome]:
        """
        Verify and process a raw GitHub webhook

        Raises:
            SignatureError: If verification is enabled and the signature is
                missing or wrong
        """
        github = self.config.github
        if github.verify_signature and not verify_github_signature(body, signature, github.webhook_secret):
            logger.warning(f"{LOG_TAG} Invalid webhook signature delivery_id={delivery_id}")
            raise SignatureError()

        try:
            payload = json.loads(body.decode("utf-8") or "{}")
        except (UnicodeDecodeError, ValueError) as e:
            raise OrchestratorError(f"Invalid webhook payload: {e}")

        event = parse_github_event(event_type, payload, delivery_id)
        if event is None:
            return []
        return await self.handle_event(event, dispatch=dispatch)

    async def create_manual(self,
                            app_key: str,
                            trigger_name: str,
                            ref: Optional[str] = None,
                            commit_sha: Optional[str] = None,
                            author: str = "manual",
                            dispatch: bool = True) -> CreatedDeployment:
        """
        Queue a deployment directly, without approval

        Raises:
            AppNotFoundError: Unknown app
            TriggerNotFoundError: Unknown trigger
            DeploymentConflictError: An active deployment exists for the pair
        """
        app = self.registry.resolve(app_key)
        trigger = app.get_trigger(trigger_name)
        if trigger is None:
            raise TriggerNotFoundError(app_key, trigger_name, [t.name for t in app.triggers])

        record = self._new_record(
            app,
            trigger,
            TriggerType.MANUAL.value,
            trigger_ref=ref or trigger.branch or "main",
            commit_sha=commit_sha or "HEAD",
            author=author,
        )
        return await self._create(app, trigger.name, record, dispatch=dispatch)

    async def rollback(self,
                       app_key: str,
                       release: Optional[str] = None,
                       steps: int = 1,
                       author: str = "operator",
                       dispatch: bool = True) -> CreatedDeployment:
        """
        Queue a rollback through the same guard and dispatcher path

        For the advanced strategy the target release is resolved up front so
        a missing target fails before any record is created.

        Raises:
            NoPreviousReleaseError: No release qualifies
            ReleaseNotFoundError: Named release does not exist
            DeploymentConflictError: A rollback is already active for the app
        """
        app = self.registry.resolve(app_key)
        target = release

        if app.is_advanced:
            strategy: AdvancedDeployer = self.deployers.make(app)
            target = (await strategy.select_rollback_target(app, release, steps)).release_name

        story = ADVANCED_ROLLBACK_STORY if app.is_advanced else ROLLBACK_STORY
        record = DeploymentRecord(
            app_key=app.key,
            app_name=app.name,
            trigger_name=ROLLBACK_TRIGGER_NAME,
            trigger_type=TriggerType.ROLLBACK.value,
            strategy=app.strategy,
            story=story,
            repository=app.repository,
            trigger_ref=target or f"HEAD~{max(1, steps)}",
            commit_sha="HEAD",
            author=author,
            rollback_target=target,
            metadata={"steps": max(1, steps)},
        )
        return await self._create(app, ROLLBACK_TRIGGER_NAME, record, dispatch=dispatch)

    # Approval

    @staticmethod
    def identity(user: Optional[str] = None, client_address: Optional[str] = None) -> str:
        """Authenticated principal, else the client address"""
        if user:
            return user
        return f"ip:{client_address}" if client_address else "unknown"

    async def approve(self,
                      token: str,
                      user: Optional[str] = None,
                      client_address: Optional[str] = None,
                      dispatch: bool = True) -> ApprovalOutcome:
        """
        Approve a pending deployment by token

        Returns:
            ``ok``, or an error of ``not_found``, ``expired`` or ``wrong_status``
        """
        try:
            record = await self.state_machine.approve(token, self.identity(user, client_address))
        except ApprovalError as e:
            return ApprovalOutcome.failure(e.reason, str(e), getattr(e, "deployment_id", None))

        if dispatch:
            self.dispatcher.submit(record.id)
        return ApprovalOutcome.success(record, "Deployment approved and queued")

    async def reject(self,
                     token: str,
                     reason: Optional[str] = None,
                     user: Optional[str] = None,
                     client_address: Optional[str] = None) -> ApprovalOutcome:
        """
        Reject a pending deployment by token

        Returns:
            ``ok``, or an error of ``not_found`` or ``wrong_status``
        """
        try:
            record = await self.state_machine.reject(token, self.identity(user, client_address), reason)
        except ApprovalError as e:
            return ApprovalOutcome.failure(e.reason, str(e), getattr(e, "deployment_id", None))

        return ApprovalOutcome.success(record, "Deployment rejected")

    async def cancel(self,
                     deployment_id: str,
                     reason: Optional[str] = None,
                     actor: str = "operator") -> DeploymentRecord:
        """
        Force an active deployment to failed and stop its process

        Raises:
            DeploymentNotFoundError: Unknown id
            InvalidStateError: Record is not active
        """
        record = await self.state_machine.cancel(deployment_id, reason, actor)
        self.dispatcher.cancel(deployment_id)
        return record

    # Queries

    async def get_deployment(self, deployment_id: str) -> DeploymentRecord:
        record = await self.store.get_deployment(deployment_id)
        if record is None:
            raise DeploymentNotFoundError(deployment_id)
        return record

    async def status(self, deployment_id: str) -> Dict[str, Any]:
        """Every field of a record except the approval token digest"""
        return (await self.get_deployment(deployment_id)).to_public_dict()

    async def pending(self, app_key: Optional[str] = None) -> List[DeploymentRecord]:
        return await self.store.list_deployments(statuses=[DeploymentStatus.PENDING_APPROVAL], app_key=app_key)

    async def active(self, app_key: Optional[str] = None) -> List[DeploymentRecord]:
        return await self.store.list_deployments(statuses=ACTIVE_STATUSES, app_key=app_key)

    async def recent(self, app_key: Optional[str] = None, limit: int = 20) -> List[DeploymentRecord]:
        return await self.store.list_deployments(app_key=app_key, limit=limit)

    async def list_releases(self, app_key: str) -> List[ReleaseInfo]:
        app = self.registry.resolve(app_key)
        return await self.deployers.make(app).list_releases(app)

    # Housekeeping

    async def expire_stale(self) -> List[DeploymentRecord]:
        """Move pending records past their window to expired, once each"""
        expired = []
        for record in await self.store.find_expired(self.clock()):
            result = await self.state_machine.expire(record.id)
            if result is not None:
                expired.append(result)

        if expired:
            logger.info(f"{LOG_TAG} Expired {len(expired)} pending deployment(s)")
        return expired

    async def rescue_stuck(self) -> List[DeploymentRecord]:
        """Fail running records that outlived the runner timeout plus a grace period"""
        grace = self.config.runner.timeout + RESCUE_GRACE_SECONDS
        cutoff = self.clock() - timedelta(seconds=grace)

        rescued = []
        for record in await self.store.find_stuck(cutoff):
            if self.dispatcher.is_running(record.id):
                continue

            output = f"{record.output or ''}\nDeployment exceeded {grace:g} seconds without completing and was marked failed.".lstrip()
            try:
                rescued.append(await self.state_machine.fail(record.id, output, TIMEOUT_EXIT_CODE))
            except OrchestratorError as e:
                logger.info(f"{LOG_TAG} Stuck deployment changed meanwhile deployment_id={record.id}: {e}")

        if rescued:
            logger.warning(f"{LOG_TAG} Rescued {len(rescued)} stuck deployment(s)")
        return rescued

    async def cleanup_records(self,
                              days: int = DEFAULT_RECORD_RETENTION_DAYS,
                              dry_run: bool = False) -> CleanupResult:
        """Delete terminal records older than ``days``"""
        cutoff = self.clock() - timedelta(days=days)
        result = CleanupResult(dry_run=dry_run)

        for record in await self.store.find_terminal_older_than(cutoff):
            if not dry_run:
                await self.store.delete_deployment(record.id)
            result.removed.append(record.id)

        logger.info(f"{LOG_TAG} Record cleanup days={days} dry_run={dry_run} count={result.count}")
        return result

    async def cleanup_releases(self, app_key: Optional[str] = None) -> Dict[str, List[str]]:
        """Apply release retention to one or every advanced app"""
        apps = [self.registry.resolve(app_key)] if app_key else self.registry.apps
        removed = {}
        for app in apps:
            if app.is_advanced:
                removed[app.key] = await self.deployers.make(app).cleanup(app)
        return removed

    async def join(self) -> None:
        """Wait until every dispatched deployment finished"""
        await self.dispatcher.join()

    async def close(self) -> None:
        await self.join()
        await self.store.close()


async def trigger(app_key: str,
                  trigger_name: str,
                  ref: Optional[str] = None,
                  commit_sha: Optional[str] = None,
                  config_path: Union[str, Path, None] = None) -> DeploymentRecord:
    """
    Run a manual deployment to completion

    This is a convenience function that creates an Orchestrator from the
    configuration file and runs one deployment.

    Args:
        app_key: Application key
        trigger_name: Trigger name
        ref: Branch or tag, defaults to the trigger branch
        commit_sha: Commit to deploy
        config_path: Configuration file

    Returns:
        DeploymentRecord: The finished record
    """
    orchestrator = Orchestrator.from_file(config_path)
    try:
        created = await orchestrator.create_manual(app_key, trigger_name, ref=ref, commit_sha=commit_sha)
        await orchestrator.join()
        return await orchestrator.get_deployment(created.record.id)
    finally:
        await orchestrator.store.close()
