# deploy_orchestrator/services/webhook_service.py
"""GitHub webhook verification and payload parsing"""

import logging
from typing import Dict, Optional, Any

from ..constants import LOG_TAG, EventKind
from ..models.event import InboundEvent
from ..utils.hash_utils import calculate_hmac, digests_equal

logger = logging.getLogger(__name__)

SIGNATURE_PREFIX = "sha256="
BRANCH_REF_PREFIX = "refs/heads/"
TAG_REF_PREFIX = "refs/tags/"


def verify_github_signature(body: bytes, signature: Optional[str], secret: Optional[str]) -> bool:
    """
    Verify an ``X-Hub-Signature-256`` header

    Args:
        body: Raw request body
        signature: Header value, ``sha256=<hex>``
        secret: Configured webhook secret

    Returns:
        True only when both secret and signature are present and match
    """
    if not secret or not signature or not signature.startswith(SIGNATURE_PREFIX):
        return False

    expected = calculate_hmac(body, secret)
    return digests_equal(expected, signature[len(SIGNATURE_PREFIX):])


def parse_github_event(event_type: str,
                       payload: Dict[str, Any],
                       delivery_id: Optional[str] = None) -> Optional[InboundEvent]:
    """
    Translate a GitHub webhook into an inbound event

    Only ``push`` and published ``release`` events are relevant; everything
    else (including ``ping``) yields None.

    Args:
        event_type: ``X-GitHub-Event`` header
        payload: Decoded JSON body
        delivery_id: ``X-GitHub-Delivery`` header

    Returns:
        InboundEvent or None
    """
    sender = payload.get("sender") or {}
    repository = (payload.get("repository") or {}).get("full_name")
    author = sender.get("login") or "unknown"

    if event_type == EventKind.PUSH.value:
        ref = payload.get("ref") or ""
        if ref.startswith(TAG_REF_PREFIX):
            logger.debug(f"{LOG_TAG} Ignoring tag push ref={ref}")
            return None
        if ref.startswith(BRANCH_REF_PREFIX):
            ref = ref[len(BRANCH_REF_PREFIX):]
        if not ref:
            return None

        head_commit = payload.get("head_commit") or {}
        return InboundEvent(
            event_kind=EventKind.PUSH.value,
            ref=ref,
            commit_sha=payload.get("after") or head_commit.get("id") or "HEAD",
            author=author,
            repository=repository,
            commit_message=head_commit.get("message"),
            delivery_id=delivery_id,
            payload=payload,
        )

    if event_type == EventKind.RELEASE.value:
        if payload.get("action") != "published":
            logger.debug(f"{LOG_TAG} Ignoring release action={payload.get('action')}")
            return None

        release = payload.get("release") or {}
        tag = release.get("tag_name")
        if not tag:
            return None

        return InboundEvent(
            event_kind=EventKind.RELEASE.value,
            ref=tag,
            commit_sha=release.get("target_commitish") or "HEAD",
            author=author,
            repository=repository,
            commit_message=release.get("body") or release.get("name"),
            delivery_id=delivery_id,
            payload=payload,
        )

    logger.debug(f"{LOG_TAG} Ignoring GitHub event type={event_type}")
    return None
