"""Tests for restore-before-prep coordination."""

from pathlib import Path

import pytest

from promptstate.foundation.errors import StateInvalidError
from promptstate.prestage import (
    OVERRIDE_REFINE_WARNING,
    Coordinator,
    default_prep_prompt,
    join_prompts,
    resolve_prep_prompt,
)
from promptstate.state import SnapshotStore, StateBundle


class StubRunner:
    """Counts live runs and returns a canned response."""

    def __init__(self, response: str = "ok", error: Exception | None = None) -> None:
        self.prompts: list[str] = []
        self.response = response
        self.error = error

    def run(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response


@pytest.fixture
def runner() -> StubRunner:
    return StubRunner()


@pytest.fixture
def warnings() -> list[str]:
    return []


@pytest.fixture
def saved(state_dir: Path, bundle: StateBundle) -> Path:
    SnapshotStore(state_dir).save(bundle)
    return state_dir


class TestPrompts:
    def test_join_prompts(self) -> None:
        assert join_prompts(["one\n", "two\t"]) == "one\n\ntwo"
        assert join_prompts(["keep  ", "x"]) == "keep  \n\nx"
        assert join_prompts([]) == ""

    def test_override_wins(self) -> None:
        assert resolve_prep_prompt(["a", "b"], "file text") == ("override", "a\n\nb")

    def test_files_joined(self) -> None:
        assert resolve_prep_prompt([], "file text\n\n") == ("override", "file text")

    def test_default(self) -> None:
        source, text = resolve_prep_prompt(None, "   ")
        assert source == "default"
        assert text == default_prep_prompt()
        assert text.strip()


class TestRestore:
    def test_restores_matching_scope(
        self, saved: Path, bundle: StateBundle, runner: StubRunner
    ) -> None:
        outcome = Coordinator(state_dir=saved, scope_key="scope-1", runner=runner).execute()

        assert outcome.used_restore
        assert outcome.restored == bundle
        assert outcome.response is None
        assert runner.prompts == []

    def test_restores_without_scope(self, saved: Path, runner: StubRunner) -> None:
        outcome = Coordinator(state_dir=str(saved), runner=runner).execute()
        assert outcome.used_restore
        assert runner.prompts == []

    def test_scope_mismatch_runs_live_once(self, saved: Path, runner: StubRunner) -> None:
        outcome = Coordinator(state_dir=saved, scope_key="scope-2", runner=runner).execute()

        assert not outcome.used_restore
        assert outcome.restored is None
        assert outcome.response == "ok"
        assert runner.prompts == [default_prep_prompt()]

    def test_missing_state_runs_live(self, state_dir: Path, runner: StubRunner) -> None:
        outcome = Coordinator(state_dir=state_dir, runner=runner).execute()
        assert not outcome.used_restore
        assert len(runner.prompts) == 1

    def test_no_state_dir_runs_live(self, runner: StubRunner) -> None:
        outcome = Coordinator(state_dir="  ", runner=runner).execute()
        assert not outcome.used_restore
        assert len(runner.prompts) == 1

    def test_refine_skips_restore(self, saved: Path, runner: StubRunner) -> None:
        outcome = Coordinator(state_dir=saved, refine=True, runner=runner).execute()
        assert not outcome.used_restore
        assert len(runner.prompts) == 1

    def test_uses_store_factory(self, runner: StubRunner) -> None:
        class BrokenStore:
            def __init__(self, path: Path) -> None:
                self.path = path

            def load_latest(self) -> StateBundle:
                raise StateInvalidError()

        outcome = Coordinator(
            state_dir="/nowhere", runner=runner, store_factory=BrokenStore
        ).execute()
        assert not outcome.used_restore
        assert len(runner.prompts) == 1


class TestOverrides:
    def test_overrides_skip_restore(self, saved: Path, runner: StubRunner) -> None:
        outcome = Coordinator(
            state_dir=saved, scope_key="scope-1", prep_prompts=["OVERRIDE"], runner=runner
        ).execute()

        assert not outcome.used_restore
        assert outcome.prompt_used == "OVERRIDE"
        assert runner.prompts == ["OVERRIDE"]

    def test_override_with_refine_warns_once(
        self, saved: Path, runner: StubRunner, warnings: list[str]
    ) -> None:
        outcome = Coordinator(
            state_dir=saved,
            refine=True,
            prep_prompts=["OVERRIDE"],
            runner=runner,
            warn=warnings.append,
        ).execute()

        assert warnings == [OVERRIDE_REFINE_WARNING]
        assert "override" in warnings[0]
        assert "refine" in warnings[0]
        assert runner.prompts == ["OVERRIDE"]
        assert not outcome.used_restore

    def test_no_warning_without_refine(
        self, saved: Path, runner: StubRunner, warnings: list[str]
    ) -> None:
        Coordinator(
            state_dir=saved, prep_prompts=["OVERRIDE"], runner=runner, warn=warnings.append
        ).execute()
        assert warnings == []

    def test_files_joined_count_as_override(self, saved: Path, runner: StubRunner) -> None:
        outcome = Coordinator(
            state_dir=saved, prep_files_joined="from files\n", runner=runner
        ).execute()
        assert not outcome.used_restore
        assert runner.prompts == ["from files"]


class TestLiveRun:
    def test_runner_error_propagates(self, state_dir: Path) -> None:
        runner = StubRunner(error=ConnectionError("endpoint down"))
        with pytest.raises(ConnectionError, match="endpoint down"):
            Coordinator(state_dir=state_dir, runner=runner).execute()
        assert len(runner.prompts) == 1

    def test_without_runner(self) -> None:
        outcome = Coordinator(prep_prompts=["p"]).execute()
        assert outcome.prompt_used == "p"
        assert outcome.response is None

    def test_coordinator_never_saves(self, state_dir: Path, runner: StubRunner) -> None:
        Coordinator(state_dir=state_dir, runner=runner).execute()
        assert list(state_dir.iterdir()) == []
