# deploy_orchestrator/core/hooks.py
"""Post-transition hooks"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional

from ..constants import LOG_TAG, DeploymentStatus
from ..models.config import ApprovalConfig
from ..models.deployment import DeploymentRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionEvent:
    """What a hook receives after a record changed status

    ``approval_token`` is only set on the creation event of a record that
    awaits approval; it is the single moment the plaintext exists.
    """
    record: DeploymentRecord
    event: str
    previous_status: Optional[str]
    new_status: str
    approval_token: Optional[str] = None

    @property
    def is_creation(self) -> bool:
        return self.previous_status is None


class TransitionHook(ABC):
    """Synchronous observer invoked by the state machine"""

    @abstractmethod
    def __call__(self, event: TransitionEvent) -> None:
        pass


class LoggingHook(TransitionHook):
    """Audit log line per transition"""

    def __call__(self, event: TransitionEvent) -> None:
        record = event.record
        logger.info(
            f"{LOG_TAG} Deployment {event.event} deployment_id={record.id} app={record.app_key} "
            f"trigger={record.trigger_name} from={event.previous_status} to={event.new_status}"
        )


@dataclass
class Notification:
    """Channel-independent notification content"""
    channel: str
    target: str
    status: str
    title: str
    record: DeploymentRecord
    approve_url: Optional[str] = None
    reject_url: Optional[str] = None


class Notifier(ABC):
    """Delivery collaborator for one notification channel"""

    @abstractmethod
    def send(self, notification: Notification) -> None:
        pass


class LogNotifier(Notifier):
    """Notifier that writes notifications to the log"""

    def send(self, notification: Notification) -> None:
        logger.info(
            f"{LOG_TAG} Notify channel={notification.channel} target={notification.target} "
            f"{notification.title}"
        )


_NOTIFY_TITLES = {
    DeploymentStatus.PENDING_APPROVAL.value: "Deployment awaiting approval",
    DeploymentStatus.QUEUED.value: "Deployment queued",
    DeploymentStatus.RUNNING.value: "Deployment started",
    DeploymentStatus.SUCCESS.value: "Deployment succeeded",
    DeploymentStatus.FAILED.value: "Deployment failed",
    DeploymentStatus.REJECTED.value: "Deployment rejected",
    DeploymentStatus.EXPIRED.value: "Deployment approval expired",
}


class NotificationHook(TransitionHook):
    """Route transitions to the app's notification targets

    App-level routes win; global routes are the fallback. Channels without a
    registered notifier are skipped.
    """

    def __init__(self,
                 notifiers: Dict[str, Notifier],
                 app_routes: Optional[Dict[str, Dict[str, str]]] = None,
                 global_routes: Optional[Dict[str, str]] = None,
                 approval: Optional[ApprovalConfig] = None):
        self.notifiers = notifiers
        self.app_routes = app_routes or {}
        self.global_routes = global_routes or {}
        self.approval = approval or ApprovalConfig()

    def routes_for(self, app_key: str) -> Dict[str, str]:
        return self.app_routes.get(app_key) or self.global_routes

    def build(self, event: TransitionEvent) -> List[Notification]:
        """Notifications produced for one transition"""
        title = _NOTIFY_TITLES.get(event.new_status)
        if not title:
            return []

        record = event.record
        title = f"{title}: {record.app_name} ({record.trigger_name}) {record.short_commit_sha or ''}".rstrip()

        notifications = []
        for channel, target in self.routes_for(record.app_key).items():
            if channel not in self.notifiers:
                continue

            notification = Notification(
                channel=channel,
                target=target,
                status=event.new_status,
                title=title,
                record=record,
            )
            if event.approval_token:
                notification.approve_url = self.approval.approve_url(event.approval_token)
                notification.reject_url = self.approval.reject_url(event.approval_token)
            notifications.append(notification)

        return notifications

    def __call__(self, event: TransitionEvent) -> None:
        for notification in self.build(event):
            try:
                self.notifiers[notification.channel].send(notification)
            except Exception:
                logger.exception(
                    f"{LOG_TAG} Notifier failed channel={notification.channel} "
                    f"deployment_id={event.record.id} status={event.new_status}"
                )
