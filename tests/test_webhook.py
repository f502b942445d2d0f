"""
Unit tests for GitHub webhook verification and parsing.
"""

import hashlib
import hmac

from deploy_orchestrator.services.webhook_service import parse_github_event, verify_github_signature

SECRET = "webhook-secret"
BODY = b'{"ref": "refs/heads/main"}'


def _sign(body, secret=SECRET):
    return "sha256=" + hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class TestVerifySignature:
    """Tests for X-Hub-Signature-256 checks."""

    def test_valid(self):
        assert verify_github_signature(BODY, _sign(BODY), SECRET)

    def test_wrong_secret(self):
        assert not verify_github_signature(BODY, _sign(BODY, "other"), SECRET)

    def test_tampered_body(self):
        assert not verify_github_signature(BODY + b" ", _sign(BODY), SECRET)

    def test_missing_prefix(self):
        assert not verify_github_signature(BODY, _sign(BODY)[len("sha256="):], SECRET)

    def test_missing_signature_or_secret(self):
        assert not verify_github_signature(BODY, None, SECRET)
        assert not verify_github_signature(BODY, _sign(BODY), "")
        assert not verify_github_signature(BODY, _sign(BODY), None)


class TestParseGithubEvent:
    """Tests for translating payloads into inbound events."""

    def test_push_strips_branch_prefix(self):
        event = parse_github_event("push", {
            "ref": "refs/heads/develop",
            "after": "9f8e7d6c5b4a",
            "head_commit": {"id": "9f8e7d6c5b4a", "message": "Fix login redirect"},
            "repository": {"full_name": "acme/web"},
            "sender": {"login": "alice"},
        }, delivery_id="d-1")

        assert event.event_kind == "push"
        assert event.ref == "develop"
        assert event.commit_sha == "9f8e7d6c5b4a"
        assert event.author == "alice"
        assert event.repository == "acme/web"
        assert event.commit_message == "Fix login redirect"
        assert event.delivery_id == "d-1"

    def test_push_without_sender(self):
        event = parse_github_event("push", {"ref": "refs/heads/main"})

        assert event.author == "unknown"
        assert event.commit_sha == "HEAD"

    def test_tag_push_ignored(self):
        assert parse_github_event("push", {"ref": "refs/tags/v1.0.0"}) is None

    def test_empty_ref_ignored(self):
        assert parse_github_event("push", {"ref": ""}) is None

    def test_published_release(self):
        event = parse_github_event("release", {
            "action": "published",
            "release": {"tag_name": "v2.3.1", "target_commitish": "main", "name": "2.3.1"},
            "repository": {"full_name": "acme/api"},
            "sender": {"login": "bob"},
        })

        assert event.event_kind == "release"
        assert event.ref == "v2.3.1"
        assert event.commit_sha == "main"
        assert event.commit_message == "2.3.1"

    def test_unpublished_release_ignored(self):
        payload = {"action": "created", "release": {"tag_name": "v2.3.1"}}

        assert parse_github_event("release", payload) is None

    def test_release_without_tag_ignored(self):
        assert parse_github_event("release", {"action": "published", "release": {}}) is None

    def test_other_events_ignored(self):
        assert parse_github_event("ping", {"zen": "Keep it logically awesome."}) is None
        assert parse_github_event("pull_request", {"action": "opened"}) is None
