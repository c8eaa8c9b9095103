"""Pytest fixtures for promptstate tests."""

from pathlib import Path

import pytest

from promptstate.foundation.config import reset_config
from promptstate.foundation.utils.paths import ensure_private_dir
from promptstate.state import SnapshotStore, StateBundle, compute_source_hash


class RecordingSyncer:
    """Directory syncer that records calls instead of fsyncing."""

    def __init__(self) -> None:
        self.calls: list[Path] = []

    def sync(self, directory: Path) -> None:
        self.calls.append(directory)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep config lookups and env overrides away from the real user setup."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(tmp_path)
    for var in (
        "PROMPTSTATE_STATE_DIR",
        "PROMPTSTATE_STATE_SCOPE",
        "PROMPTSTATE_STATE_QUARANTINE",
        "PROMPTSTATE_LOCK_TIMEOUT_SECONDS",
        "PROMPTSTATE_LOCK_JITTER_MIN_MS",
        "PROMPTSTATE_LOCK_JITTER_MAX_MS",
        "PROMPTSTATE_DEBUG",
        "PROMPTSTATE_LOG_LEVEL",
    ):
        monkeypatch.delenv(var, raising=False)
    reset_config()
    yield
    reset_config()


@pytest.fixture
def bundle() -> StateBundle:
    """A valid bundle for scope-1."""
    b = StateBundle(
        created_at="2026-01-21T15:04:05Z",
        tool_version="0.1.0",
        model_id="gpt-x",
        base_url="http://api",
        scope_key="scope-1",
        prompts={"system": "sys1", "developer": "dev1"},
        prep_settings={"temperature": 0.1, "max_tokens": 32},
        context={"goal": "demo"},
        tool_caps={"search": True},
    )
    b.source_hash = compute_source_hash(b.model_id, b.base_url, b.toolset_hash, b.scope_key)
    return b


@pytest.fixture
def state_dir(tmp_path: Path) -> Path:
    """Private, empty state directory."""
    return ensure_private_dir(tmp_path / "state")


@pytest.fixture
def syncer() -> RecordingSyncer:
    return RecordingSyncer()


@pytest.fixture
def store(state_dir: Path, syncer: RecordingSyncer) -> SnapshotStore:
    """Store with a recording syncer and a short lock budget."""
    return SnapshotStore(state_dir, syncer=syncer, lock_timeout=0.3, lock_jitter=(0.01, 0.02))
