"""
Pytest configuration and shared fixtures for deploy-orchestrator tests.
"""

import os
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Tuple, Union

import pytest

from deploy_orchestrator.core.app_registry import AppRegistry
from deploy_orchestrator.core.approval_token import ApprovalTokenService
from deploy_orchestrator.core.concurrency import ConcurrencyGuard
from deploy_orchestrator.core.dispatcher import Dispatcher
from deploy_orchestrator.core.state_machine import StateMachine
from deploy_orchestrator.deployers.factory import DeployerFactory
from deploy_orchestrator.models.config import OrchestratorConfig
from deploy_orchestrator.models.deployment import DeploymentRecord
from deploy_orchestrator.models.result import ProcessResult
from deploy_orchestrator.runner.base import ProcessRunner
from deploy_orchestrator.storage.memory import MemoryStorage

RELEASE_PATTERN = r"/^v\d+\.\d+\.\d+$/"


class FakeRunner(ProcessRunner):
    """Runner recording every call and answering from a per-story table"""

    def __init__(self):
        self.calls: List[Tuple[str, Dict[str, str], Optional[float]]] = []
        self.results: Dict[str, Union[ProcessResult, Exception]] = {}
        self.default = ProcessResult(stdout="ok\n", exit_code=0)
        self.side_effect: Optional[Callable[[str, Dict[str, str]], None]] = None

    async def run(self, story, params, timeout=None):
        self.calls.append((story, dict(params), timeout))
        if self.side_effect:
            self.side_effect(story, params)

        result = self.results.get(story, self.default)
        if isinstance(result, Exception):
            raise result
        return result

    @property
    def stories(self) -> List[str]:
        return [call[0] for call in self.calls]


class FixedClock:
    """Manually advanced UTC clock"""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2025, 3, 14, 9, 30, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def simple_app(path, **overrides):
    data = {
        "name": "Web",
        "path": str(path),
        "strategy": "simple",
        "repository": "git@github.com:acme/web.git",
        "triggers": [
            {"name": "staging", "on": "push", "branch": "develop"},
            {"name": "production", "on": "push", "branch": "main", "auto_deploy": False},
        ],
    }
    data.update(overrides)
    return data


def advanced_app(path, **overrides):
    data = {
        "name": "API",
        "path": str(path),
        "strategy": "advanced",
        "repository": "acme/api",
        "advanced": {"keep_releases": 2, "shared_dirs": ["storage"], "shared_files": [".env"]},
        "triggers": [
            {"name": "production", "on": "release", "tag_pattern": RELEASE_PATTERN, "auto_deploy": False},
            {"name": "staging", "on": "push", "branch": "main"},
        ],
    }
    data.update(overrides)
    return data


def make_record(app_key="web", trigger_name="staging", **fields) -> DeploymentRecord:
    values = {
        "app_key": app_key,
        "app_name": app_key.title(),
        "trigger_name": trigger_name,
        "trigger_type": "push",
        "strategy": "simple",
        "story": trigger_name,
        "trigger_ref": "develop",
        "commit_sha": "abc1234def5678",
        "author": "alice",
    }
    values.update(fields)
    return DeploymentRecord(**values)


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def store():
    return MemoryStorage()


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def tokens():
    return ApprovalTokenService(secret="test-approval-secret")


@pytest.fixture
def state_machine(store, tokens, clock):
    return StateMachine(store, tokens, clock=clock)


@pytest.fixture
def app_dirs(tmp_path):
    web = tmp_path / "web"
    api = tmp_path / "api"
    web.mkdir()
    api.mkdir()
    return {"web": web, "api": api}


@pytest.fixture
def apps_config(app_dirs):
    return {
        "web": simple_app(app_dirs["web"]),
        "api": advanced_app(app_dirs["api"]),
    }


@pytest.fixture
def registry(apps_config):
    return AppRegistry.from_config(apps_config)


@pytest.fixture
def dispatcher(registry, state_machine, store, runner, clock):
    deployers = DeployerFactory(runner, store, timeout=30, clock=clock)
    return Dispatcher(registry, state_machine, ConcurrencyGuard(store), deployers, runner_timeout=30)


@pytest.fixture
def make_orchestrator(apps_config, store, runner, clock):
    """Build an orchestrator over the in-memory store and fake runner"""
    from deploy_orchestrator.api.orchestrator import Orchestrator

    def factory(apps=None, **config):
        data = {"apps": apps if apps is not None else apps_config, "storage": {"type": "memory"}}
        data.update(config)
        return Orchestrator(
            OrchestratorConfig.from_dict(data),
            store=store,
            runner=runner,
            clock=clock,
        )

    return factory


@pytest.fixture
def release_writer():
    """Runner side effect materializing a fake checkout in the release directory"""

    def write(story, params):
        release_path = params.get("release_path")
        if not release_path:
            return
        with open(os.path.join(release_path, "index.html"), "w") as f:
            f.write(params["release"])
        os.makedirs(os.path.join(release_path, "storage"), exist_ok=True)

    return write
