"""
Unit tests for the memory and filesystem storage backends.
"""

import asyncio
import json
from datetime import timedelta

import pytest

from deploy_orchestrator.api.exceptions import (
    DuplicateDeliveryError,
    IllegalTransitionError,
    ReleaseNotFoundError,
    StorageError,
)
from deploy_orchestrator.constants import DeploymentStatus, StorageType
from deploy_orchestrator.models.config import StorageConfig
from deploy_orchestrator.models.release import ReleaseRecord
from deploy_orchestrator.storage.factory import StorageFactory
from deploy_orchestrator.storage.filesystem import FilesystemStorage
from deploy_orchestrator.storage.memory import MemoryStorage

from conftest import FixedClock, make_record


def _release(name, app_key="api"):
    return ReleaseRecord(app_key=app_key, release_name=name, path=f"/srv/{app_key}/releases/{name}")


@pytest.fixture(params=["memory", "filesystem"])
def backend(request, tmp_path):
    if request.param == "memory":
        return MemoryStorage()
    return FilesystemStorage({"path": str(tmp_path / "state" / "deployments.json")})


class TestDeploymentRecords:
    """Tests shared by every backend."""

    @pytest.mark.asyncio
    async def test_add_and_get_returns_copy(self, backend):
        record = make_record()
        await backend.add_deployment(record)

        loaded = await backend.get_deployment(record.id)
        loaded.status = DeploymentStatus.FAILED.value

        again = await backend.get_deployment(record.id)
        assert again.status == DeploymentStatus.QUEUED.value
        assert again.commit_sha == record.commit_sha
        assert again.created_at is not None

    @pytest.mark.asyncio
    async def test_duplicate_delivery(self, backend):
        first = make_record(delivery_id="delivery-1")
        await backend.add_deployment(first)

        with pytest.raises(DuplicateDeliveryError) as exc_info:
            await backend.add_deployment(make_record(delivery_id="delivery-1"))

        assert exc_info.value.existing_id == first.id
        assert (await backend.find_by_delivery_id("delivery-1")).id == first.id

    @pytest.mark.asyncio
    async def test_compare_and_set(self, backend):
        record = make_record()
        await backend.add_deployment(record)

        record.status = DeploymentStatus.RUNNING.value
        await backend.update_deployment(record, expected_status=DeploymentStatus.QUEUED.value)

        record.status = DeploymentStatus.SUCCESS.value
        with pytest.raises(IllegalTransitionError):
            await backend.update_deployment(record, expected_status=DeploymentStatus.QUEUED.value)

        assert (await backend.get_deployment(record.id)).status == DeploymentStatus.RUNNING.value

    @pytest.mark.asyncio
    async def test_update_missing(self, backend):
        with pytest.raises(StorageError):
            await backend.update_deployment(make_record())

    @pytest.mark.asyncio
    async def test_find_active_oldest_first(self, backend):
        clock = FixedClock()
        older = make_record(created_at=clock.now)
        newer = make_record(created_at=clock.advance(minutes=1))
        done = make_record(status=DeploymentStatus.SUCCESS.value, created_at=clock.now - timedelta(hours=1))
        for record in (newer, older, done):
            await backend.add_deployment(record)

        assert (await backend.find_active("web", "staging")).id == older.id
        assert (await backend.find_active("web", "staging", exclude_id=older.id)).id == newer.id
        assert await backend.find_active("web", "production") is None

    @pytest.mark.asyncio
    async def test_list_and_filters(self, backend):
        clock = FixedClock()
        pending = make_record(status=DeploymentStatus.PENDING_APPROVAL.value, created_at=clock.now)
        failed = make_record(app_key="api", status=DeploymentStatus.FAILED.value, created_at=clock.advance(minutes=1))
        for record in (pending, failed):
            await backend.add_deployment(record)

        assert [r.id for r in await backend.list_deployments()] == [failed.id, pending.id]
        assert [r.id for r in await backend.list_deployments(statuses=["pending_approval"])] == [pending.id]
        assert [r.id for r in await backend.list_deployments(app_key="api")] == [failed.id]
        assert len(await backend.list_deployments(limit=1)) == 1

    @pytest.mark.asyncio
    async def test_sweep_queries(self, backend):
        clock = FixedClock()
        expired = make_record(status="pending_approval", expires_at=clock.now - timedelta(minutes=1))
        open_window = make_record(status="pending_approval", expires_at=clock.now + timedelta(hours=1))
        stuck = make_record(status="running", started_at=clock.now - timedelta(hours=2))
        old = make_record(status="success", created_at=clock.now - timedelta(days=100))
        for record in (expired, open_window, stuck, old):
            await backend.add_deployment(record)

        assert [r.id for r in await backend.find_expired(clock.now)] == [expired.id]
        assert [r.id for r in await backend.find_stuck(clock.now - timedelta(hours=1))] == [stuck.id]
        assert [r.id for r in await backend.find_terminal_older_than(clock.now - timedelta(days=90))] == [old.id]

    @pytest.mark.asyncio
    async def test_token_hash_lookup(self, backend):
        record = make_record(approval_token_hash="f" * 64)
        await backend.add_deployment(record)

        assert (await backend.find_by_token_hash("f" * 64)).id == record.id
        assert await backend.find_by_token_hash("") is None

    @pytest.mark.asyncio
    async def test_delete(self, backend):
        record = make_record()
        await backend.add_deployment(record)

        assert await backend.delete_deployment(record.id)
        assert not await backend.delete_deployment(record.id)
        assert await backend.get_deployment(record.id) is None


class TestReleaseRecords:
    """Tests for release bookkeeping."""

    @pytest.mark.asyncio
    async def test_sequence_and_single_active(self, backend):
        await backend.add_release(_release("a"), activate=True)
        await backend.add_release(_release("b"), activate=True)
        await backend.add_release(_release("c"))

        releases = await backend.list_releases("api")
        assert [(r.release_name, r.sequence, r.is_active) for r in releases] == [
            ("c", 3, False),
            ("b", 2, True),
            ("a", 1, False),
        ]

        await backend.activate_release("api", "a")
        assert [r.release_name for r in await backend.list_releases("api") if r.is_active] == ["a"]

    @pytest.mark.asyncio
    async def test_sequences_are_per_app(self, backend):
        await backend.add_release(_release("a"))
        other = await backend.add_release(_release("a", app_key="web"))

        assert other.sequence == 1

    @pytest.mark.asyncio
    async def test_duplicate_release_name(self, backend):
        await backend.add_release(_release("a"))

        with pytest.raises(StorageError):
            await backend.add_release(_release("a"))

    @pytest.mark.asyncio
    async def test_activate_unknown(self, backend):
        with pytest.raises(ReleaseNotFoundError):
            await backend.activate_release("api", "missing")

    @pytest.mark.asyncio
    async def test_delete_release(self, backend):
        await backend.add_release(_release("a"))

        assert await backend.delete_release("api", "a")
        assert await backend.get_release("api", "a") is None
        assert await backend.get_active_release("api") is None


class TestFilesystemStorage:
    """Tests specific to the JSON document backend."""

    @pytest.mark.asyncio
    async def test_state_survives_new_instance(self, tmp_path):
        path = tmp_path / "deployments.json"
        record = make_record()
        await FilesystemStorage({"path": str(path)}).add_deployment(record)
        await FilesystemStorage({"path": str(path)}).add_release(_release("a"), activate=True)

        reopened = FilesystemStorage({"path": str(path)})
        assert (await reopened.get_deployment(record.id)).id == record.id
        assert (await reopened.get_active_release("api")).release_name == "a"

        document = json.loads(path.read_text())
        assert document["version"] == 1
        assert record.id in document["deployments"]

    @pytest.mark.asyncio
    async def test_corrupt_document(self, tmp_path):
        path = tmp_path / "deployments.json"
        path.write_text("{not json")

        with pytest.raises(StorageError):
            await FilesystemStorage({"path": str(path)}).get_deployment("x")

    @pytest.mark.asyncio
    async def test_claim_lock_serializes(self, tmp_path):
        storage = FilesystemStorage({"path": str(tmp_path / "deployments.json")})
        order = []

        async def hold(name):
            async with storage.claim_lock("web:staging"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(hold("a"), hold("b"))

        assert order in (["a-in", "a-out", "b-in", "b-out"], ["b-in", "b-out", "a-in", "a-out"])
        assert (tmp_path / "locks" / "web_staging.lock").exists()


class TestStorageFactory:
    """Tests for backend selection."""

    def test_memory(self):
        assert isinstance(StorageFactory.create_from_config(StorageConfig(type="memory")), MemoryStorage)

    def test_filesystem_path(self, tmp_path):
        storage = StorageFactory.create_from_config(StorageConfig(type="filesystem", path=str(tmp_path / "s.json")))

        assert isinstance(storage, FilesystemStorage)
        assert storage.path == tmp_path / "s.json"

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            StorageFactory.create_from_config(StorageConfig(type="redis"))

    def test_supported_types(self):
        assert set(StorageFactory.get_supported_types()) >= {StorageType.MEMORY.value, StorageType.FILESYSTEM.value}

    def test_register_backend(self, monkeypatch):
        class RecordingStorage(MemoryStorage):
            pass

        monkeypatch.setattr(StorageFactory, "_backends", dict(StorageFactory._backends))
        StorageFactory.register_backend(StorageType.MEMORY, RecordingStorage)

        assert isinstance(StorageFactory.create_from_config(StorageConfig(type="memory")), RecordingStorage)
