"""
Tests for the command line interface using click's CliRunner.
"""

import json

import pytest
import yaml
from click.testing import CliRunner

from deploy_orchestrator.cli.main import cli

from conftest import RELEASE_PATTERN


@pytest.fixture
def cli_runner():
    return CliRunner()


@pytest.fixture
def write_config(tmp_path):
    """Write a configuration file whose stories run ``command``"""

    def write(command="true", **extra):
        web = tmp_path / "web"
        web.mkdir(exist_ok=True)
        data = {
            "storage": {"type": "filesystem", "path": str(tmp_path / "state" / "deployments.json")},
            "runner": {"command": command, "timeout": 30},
            "github": {"verify_signature": False},
            "apps": {
                "web": {
                    "name": "Web",
                    "path": str(web),
                    "repository": "acme/web",
                    "triggers": [
                        {"name": "staging", "on": "push", "branch": "develop"},
                        {"name": "production", "on": "release", "tag_pattern": RELEASE_PATTERN,
                         "auto_deploy": False},
                    ],
                },
            },
        }
        data.update(extra)
        path = tmp_path / "deploy-orchestrator.yaml"
        path.write_text(yaml.safe_dump(data))
        return str(path)

    return write


class TestConfigurationCommands:
    """Tests for apps and check."""

    def test_check(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "check"])

        assert result.exit_code == 0
        assert "Configuration is valid (1 application(s))" in result.output

    def test_apps_json(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "apps", "--output", "json"])

        assert result.exit_code == 0
        assert '"web"' in result.output
        assert '"strategy": "simple"' in result.output

    def test_apps_table(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "apps"])

        assert result.exit_code == 0
        assert "web" in result.output

    def test_missing_config(self, cli_runner, tmp_path):
        result = cli_runner.invoke(cli, ["-c", str(tmp_path / "absent.yaml"), "check"])

        assert result.exit_code == 1
        assert "Configuration file not found" in result.output

    def test_invalid_app(self, cli_runner, write_config):
        path = write_config(apps={"web": {"path": "/srv/web", "triggers": [{"name": "staging", "on": "push"}]}})

        result = cli_runner.invoke(cli, ["-c", path, "check"])

        assert result.exit_code == 1


class TestDeploymentCommands:
    """Tests for trigger, status and history."""

    def test_trigger_success(self, cli_runner, write_config):
        path = write_config("true")

        result = cli_runner.invoke(cli, ["-c", path, "trigger", "web", "-t", "staging"])

        assert result.exit_code == 0
        assert "success" in result.output

        history = cli_runner.invoke(cli, ["-c", path, "history", "--app", "web"])
        assert history.exit_code == 0
        assert "No deployments found" not in history.output

    def test_trigger_failure(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config("false"), "trigger", "web", "-t", "staging"])

        assert result.exit_code == 1
        assert "failed" in result.output

    def test_trigger_unknown_trigger(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "trigger", "web", "-t", "nightly"])

        assert result.exit_code == 1

    def test_status_unknown(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "status", "no-such-id"])

        assert result.exit_code == 1
        assert "Deployment not found" in result.output

    def test_pending_empty(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "pending"])

        assert result.exit_code == 0
        assert "No deployments found" in result.output


class TestWebhookCommand:
    """Tests for replaying webhook payloads."""

    def test_release_waits_for_approval(self, cli_runner, write_config, tmp_path):
        path = write_config()
        payload = tmp_path / "release.json"
        payload.write_text(json.dumps({
            "action": "published",
            "release": {"tag_name": "v1.4.0", "target_commitish": "main"},
            "repository": {"full_name": "acme/web"},
            "sender": {"login": "bob"},
        }))

        result = cli_runner.invoke(cli, ["-c", path, "webhook", "--event", "release", "--payload", str(payload)])

        assert result.exit_code == 0
        assert "Approval token:" in result.output

        pending = cli_runner.invoke(cli, ["-c", path, "pending", "--app", "web"])
        assert "No deployments found" not in pending.output

    def test_ignored_event(self, cli_runner, write_config, tmp_path):
        payload = tmp_path / "ping.json"
        payload.write_text(json.dumps({"zen": "Practicality beats purity."}))

        result = cli_runner.invoke(cli, ["-c", write_config(), "webhook", "--event", "ping", "--payload", str(payload)])

        assert result.exit_code == 0
        assert "No matching triggers" in result.output


class TestApprovalCommands:
    """Tests for approve and reject with bad tokens."""

    def test_approve_unknown_token(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "approve", "not-a-real-token"])

        assert result.exit_code == 1
        assert "not_found" in result.output


class TestMaintenanceCommands:
    """Tests for expire, cleanup and releases."""

    def test_expire_nothing(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "expire"])

        assert result.exit_code == 0
        assert "Nothing to expire" in result.output

    def test_cleanup_dry_run(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "cleanup", "--days", "30", "--dry-run"])

        assert result.exit_code == 0
        assert "Would delete 0 record(s) older than 30 days" in result.output

    def test_releases_of_simple_app_without_history(self, cli_runner, write_config):
        result = cli_runner.invoke(cli, ["-c", write_config(), "releases", "web"])

        assert result.exit_code == 0
        assert "No releases found for web" in result.output
