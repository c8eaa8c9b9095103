"""Tests for the promptstate CLI."""

import json
import logging
import os
import stat
from pathlib import Path

import pytest
from click.testing import CliRunner

from promptstate import __version__
from promptstate.foundation.errors import ErrorCode, StateInvalidError
from promptstate.interface.cli import main
from promptstate.interface.cli.core.error_handler import as_prompt_state_error, handle_error
from promptstate.state import (
    LATEST_FILE_NAME,
    SnapshotStore,
    StateBundle,
    compute_default_scope,
    compute_source_hash,
    compute_toolset_hash,
)

posix_only = pytest.mark.skipif(os.name == "nt", reason="POSIX permission bits")


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def restore_root_logger():
    """The CLI reconfigures the root logger; put it back after each test."""
    root = logging.getLogger()
    level, handlers = root.level, list(root.handlers)
    yield
    root.setLevel(level)
    root.handlers[:] = handlers


@pytest.fixture
def saved(state_dir: Path, bundle: StateBundle) -> Path:
    SnapshotStore(state_dir).save(bundle)
    return state_dir


class TestShow:
    def test_json(self, runner: CliRunner, saved: Path, bundle: StateBundle) -> None:
        result = runner.invoke(main, ["show", "--state-dir", str(saved), "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == bundle.to_dict()

    def test_human(self, runner: CliRunner, saved: Path) -> None:
        result = runner.invoke(main, ["show", "--state-dir", str(saved)])
        assert result.exit_code == 0, result.output
        assert "gpt-x" in result.output
        assert "scope-1" in result.output
        assert "dev1" in result.output

    def test_state_dir_from_env(self, runner: CliRunner, saved: Path) -> None:
        result = runner.invoke(
            main, ["show", "--json"], env={"PROMPTSTATE_STATE_DIR": str(saved)}
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["scope_key"] == "scope-1"

    def test_no_state(self, runner: CliRunner, state_dir: Path) -> None:
        result = runner.invoke(main, ["show", "--state-dir", str(state_dir)])
        assert result.exit_code == 1

    def test_no_state_dir(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["show"])
        assert result.exit_code == 1


class TestSave:
    def test_save_recomputes_source_hash(
        self, runner: CliRunner, tmp_path: Path, state_dir: Path, bundle: StateBundle
    ) -> None:
        data = bundle.to_dict()
        data["source_hash"] = "wrong"
        del data["created_at"]
        bundle_file = tmp_path / "bundle.json"
        bundle_file.write_text(json.dumps(data))

        result = runner.invoke(
            main, ["save", str(bundle_file), "--state-dir", str(state_dir), "--json"]
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["snapshot"].startswith("state-")
        loaded = SnapshotStore(state_dir).load_latest()
        assert loaded.source_hash == compute_source_hash("gpt-x", "http://api", "", "scope-1")
        assert loaded.created_at.endswith("Z")

    def test_invalid_bundle(self, runner: CliRunner, tmp_path: Path, state_dir: Path) -> None:
        bundle_file = tmp_path / "bundle.json"
        bundle_file.write_text(json.dumps({"model_id": "gpt-x"}))
        result = runner.invoke(main, ["save", str(bundle_file), "--state-dir", str(state_dir)])
        assert result.exit_code == 1
        assert not (state_dir / LATEST_FILE_NAME).exists()

    def test_malformed_json(self, runner: CliRunner, tmp_path: Path, state_dir: Path) -> None:
        bundle_file = tmp_path / "bundle.json"
        bundle_file.write_text("{nope")
        result = runner.invoke(main, ["save", str(bundle_file), "--state-dir", str(state_dir)])
        assert result.exit_code == 1

    @posix_only
    def test_refuses_world_writable_dir(
        self, runner: CliRunner, tmp_path: Path, state_dir: Path, bundle: StateBundle
    ) -> None:
        bundle_file = tmp_path / "bundle.json"
        bundle_file.write_text(json.dumps(bundle.to_dict()))
        os.chmod(state_dir, 0o777)

        result = runner.invoke(
            main, ["save", str(bundle_file), "--state-dir", str(state_dir), "--json"]
        )

        assert result.exit_code == 1
        assert not (state_dir / LATEST_FILE_NAME).exists()
        assert stat.S_IMODE(state_dir.stat().st_mode) == 0o777


class TestRefine:
    def test_refine_text(self, runner: CliRunner, saved: Path) -> None:
        result = runner.invoke(
            main,
            ["refine", "--state-dir", str(saved), "--text", "be terse", "-u", "hello", "--json"],
        )

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        store = SnapshotStore(saved)
        latest = store.load_latest()
        assert latest.prompts["developer"] == "dev1\n\nbe terse\n\nUSER: hello"
        assert latest.prev_sha == payload["prev_sha"]
        assert len(store.list_snapshots()) == 2

    def test_refine_file(self, runner: CliRunner, saved: Path, tmp_path: Path) -> None:
        refine_file = tmp_path / "refine.md"
        refine_file.write_text("from file")
        result = runner.invoke(
            main,
            ["refine", "--state-dir", str(saved), "--text", "ignored", "--file", str(refine_file)],
        )
        assert result.exit_code == 0, result.output
        developer = SnapshotStore(saved).load_latest().prompts["developer"]
        assert developer == "dev1\n\nfrom file"

    def test_requires_state_dir(self, runner: CliRunner) -> None:
        result = runner.invoke(main, ["refine", "--text", "x", "--json"])
        assert result.exit_code == 1

    def test_requires_prior_state(self, runner: CliRunner, state_dir: Path) -> None:
        result = runner.invoke(main, ["refine", "--state-dir", str(state_dir), "--text", "x"])
        assert result.exit_code == 1
        assert SnapshotStore(state_dir).list_snapshots() == []


class TestPlan:
    def _plan(self, runner: CliRunner, *args: str) -> dict:
        result = runner.invoke(main, ["plan", *args])
        assert result.exit_code == 0, result.output
        return json.loads(result.output)["plan"]

    def test_no_state_dir(self, runner: CliRunner) -> None:
        plan = self._plan(runner)
        assert plan["action"] == "none"
        assert plan["state_dir"] == ""

    def test_restore_or_save(self, runner: CliRunner, saved: Path) -> None:
        plan = self._plan(runner, "--state-dir", str(saved), "--scope", "scope-1")
        assert plan["action"] == "restore_or_save"
        assert plan["scope_key"] == "scope-1"
        assert plan["latest_snapshot"].startswith("state-")

    def test_refine(self, runner: CliRunner, tmp_path: Path) -> None:
        target = tmp_path / "planned"
        plan = self._plan(runner, "--state-dir", str(target), "--text", "be terse")
        assert plan["action"] == "refine"
        assert plan["has_refine_text"] is True
        assert plan["has_refine_file"] is False
        assert not target.exists()


class TestScope:
    def test_default_scope(self, runner: CliRunner, tmp_path: Path) -> None:
        tools = tmp_path / "tools.json"
        tools.write_text("[]")
        result = runner.invoke(
            main, ["scope", "--model", "gpt-x", "--base-url", "http://api", "--tools", str(tools)]
        )
        assert result.exit_code == 0, result.output
        expected = compute_default_scope("gpt-x", "http://api", compute_toolset_hash(tools))
        assert result.output.strip() == expected


class TestVerify:
    def test_clean(self, runner: CliRunner, saved: Path) -> None:
        result = runner.invoke(main, ["verify", "--state-dir", str(saved), "--json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["ok"] is True
        assert len(payload["snapshots"]) == 1

    def test_problems_exit_nonzero(self, runner: CliRunner, saved: Path) -> None:
        (saved / LATEST_FILE_NAME).write_text("{garbage")
        result = runner.invoke(main, ["verify", "--state-dir", str(saved)])
        assert result.exit_code == 1
        assert "bad pointer" in result.output

    @posix_only
    def test_reports_world_writable_dir(self, runner: CliRunner, saved: Path) -> None:
        os.chmod(saved, 0o777)

        result = runner.invoke(main, ["verify", "--state-dir", str(saved), "--json"])

        assert result.exit_code == 1
        payload = json.loads(result.output)
        assert payload["ok"] is False
        assert "world-writable" in payload["problems"][0]
        assert stat.S_IMODE(saved.stat().st_mode) == 0o777


def test_version(runner: CliRunner) -> None:
    result = runner.invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


class TestErrorHandler:
    def test_wraps_permission_error(self) -> None:
        err = as_prompt_state_error(PermissionError(13, "denied", "/x/latest.json"))
        assert err.code == ErrorCode.FILE_PERMISSION_DENIED
        assert err.context["path"] == "/x/latest.json"
        assert str(err) == "[PS-7004] Permission denied: /x/latest.json"

    def test_wraps_missing_file(self) -> None:
        err = as_prompt_state_error(FileNotFoundError(2, "missing", "/x/bundle.json"))
        assert err.code == ErrorCode.FILE_NOT_FOUND
        assert err.error_id == "PS-7003"

    def test_wraps_other_os_error(self) -> None:
        err = as_prompt_state_error(OSError(28, "disk full", "/x/state.json"))
        assert err.code == ErrorCode.FILE_WRITE_FAILED

    def test_wraps_value_error(self) -> None:
        assert as_prompt_state_error(ValueError("Invalid JSON")).code == ErrorCode.STATE_INVALID

    def test_passes_domain_error_through(self) -> None:
        original = StateInvalidError()
        assert as_prompt_state_error(original) is original

    def test_json_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit) as exc_info:
            handle_error(StateInvalidError(), json_output=True)
        assert exc_info.value.code == 1
        payload = json.loads(capsys.readouterr().err)
        assert payload["error_id"] == "PS-6001"
        assert payload["recovery_hints"]
