"""State commands - inspect, save, refine and verify persisted state."""

import json
from pathlib import Path

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from promptstate.foundation.config import PromptStateConfig, resolve_state_dir
from promptstate.foundation.errors import PromptStateError, state_dir_required
from promptstate.foundation.utils.paths import normalize_path
from promptstate.foundation.utils.serialization import safe_json_loads
from promptstate.foundation.utils.timestamps import format_rfc3339, utc_now
from promptstate.interface.cli.core.error_handler import handle_error
from promptstate.state import (
    SnapshotStore,
    StateBundle,
    compute_default_scope,
    compute_toolset_hash,
    refine_state_bundle,
    resolve_refine_input,
)

console = Console()

state_dir_option = click.option(
    "--state-dir",
    "-d",
    default=None,
    help="State directory (default: config state.dir / PROMPTSTATE_STATE_DIR)",
)
json_option = click.option("--json", "json_output", is_flag=True, help="Output as JSON")


def _config(ctx: click.Context) -> PromptStateConfig:
    obj = ctx.find_object(dict) or {}
    config = obj.get("config")
    return config if config is not None else PromptStateConfig()


def _store(ctx: click.Context, state_dir: str | None, operation: str) -> SnapshotStore:
    """Resolve the state directory and build a store from config."""
    config = _config(ctx)
    resolved = resolve_state_dir(state_dir or config.state.dir)
    if resolved is None:
        raise state_dir_required(operation)
    return SnapshotStore(
        resolved,
        lock_timeout=config.lock.timeout_seconds,
        lock_jitter=config.lock.jitter,
        quarantine=config.state.quarantine,
    )


@click.command("show")
@state_dir_option
@json_option
@click.pass_context
def show(ctx: click.Context, state_dir: str | None, json_output: bool) -> None:
    """Show the latest persisted bundle."""
    try:
        store = _store(ctx, state_dir, "show")
        bundle = store.load_latest()
    except PromptStateError as e:
        handle_error(e, json_output=json_output)

    if json_output:
        click.echo(json.dumps(bundle.to_dict(), indent=2, ensure_ascii=False))
        return

    pointer = store.latest_pointer()
    _display_bundle(bundle, pointer.path if pointer else "")


def _display_bundle(bundle: StateBundle, snapshot_name: str) -> None:
    """Display a bundle in rich format."""
    console.print(Panel(f"📦 {snapshot_name or 'latest'}", border_style="blue"))

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    for name in (
        "created_at",
        "tool_version",
        "model_id",
        "base_url",
        "toolset_hash",
        "scope_key",
        "source_hash",
        "prev_sha",
    ):
        value = getattr(bundle, name)
        table.add_row(name, value if value else "[dim]-[/dim]")
    console.print(table)

    if bundle.prompts:
        console.print("\n[bold]Prompts:[/bold]")
        for role, text in bundle.prompts.items():
            console.print(Panel(text, title=role, title_align="left", border_style="dim"))

    for name in ("prep_settings", "context", "tool_caps", "custom"):
        value = getattr(bundle, name)
        if value:
            console.print(f"\n[bold]{name}:[/bold] {json.dumps(value, ensure_ascii=False)}")


@click.command("save")
@click.argument("bundle_file", type=click.Path(exists=True, dir_okay=False))
@state_dir_option
@json_option
@click.pass_context
def save(ctx: click.Context, bundle_file: str, state_dir: str | None, json_output: bool) -> None:
    """Save a bundle from a JSON file as the new latest snapshot.

    source_hash is always recomputed from the identifying fields. A missing
    created_at is stamped with the current time.
    """
    try:
        store = _store(ctx, state_dir, "save")
        data = safe_json_loads(Path(bundle_file).read_bytes())
        bundle = StateBundle.from_dict(data)
        if not bundle.created_at:
            bundle.created_at = format_rfc3339(utc_now())
        bundle = bundle.with_recomputed_source_hash()
        snapshot = store.save(bundle)
    except (PromptStateError, OSError, ValueError) as e:
        handle_error(e, json_output=json_output)

    if json_output:
        click.echo(json.dumps({"snapshot": snapshot.name, "source_hash": bundle.source_hash}))
        return
    console.print(f"[green]✓[/green] Saved {snapshot.name}")


@click.command("refine")
@state_dir_option
@click.option("--text", "refine_text", default="", help="Refinement instruction")
@click.option(
    "--file",
    "refine_file",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="File with the refinement instruction (wins over --text)",
)
@click.option("--user-prompt", "-u", default="", help="User text appended with a USER: tag")
@json_option
@click.pass_context
def refine(
    ctx: click.Context,
    state_dir: str | None,
    refine_text: str,
    refine_file: str | None,
    user_prompt: str,
    json_output: bool,
) -> None:
    """Refine the latest bundle and save the result.

    \b
    Examples:
        promptstate refine --text "tighten temperature to 0.2"
        promptstate refine --file notes.md --user-prompt "hello"
    """
    try:
        store = _store(ctx, state_dir, "refine")
        prev = store.load_latest()
        instruction = resolve_refine_input(refine_text, refine_file)
        refined = refine_state_bundle(prev, instruction, user_prompt)
        snapshot = store.save(refined)
    except (PromptStateError, OSError) as e:
        handle_error(e, json_output=json_output)

    if json_output:
        click.echo(json.dumps({"snapshot": snapshot.name, "prev_sha": refined.prev_sha}))
        return
    console.print(f"[green]✓[/green] Refined -> {snapshot.name}")
    console.print(f"  [dim]prev_sha {refined.prev_sha[:12]}[/dim]")


@click.command("plan")
@state_dir_option
@click.option("--scope", "scope_key", default=None, help="Scope key restored state must match")
@click.option("--refine", "refine_flag", is_flag=True, help="Plan a refinement instead of a restore")
@click.option("--text", "refine_text", default="", help="Refinement instruction")
@click.option("--file", "refine_file", default="", help="Refinement instruction file")
@click.pass_context
def plan(
    ctx: click.Context,
    state_dir: str | None,
    scope_key: str | None,
    refine_flag: bool,
    refine_text: str,
    refine_file: str,
) -> None:
    """Print the intended state actions as JSON without writing anything."""
    config = _config(ctx)
    raw_dir = (state_dir or config.state.dir or "").strip()
    directory = str(normalize_path(raw_dir)) if raw_dir else ""
    scope_value = (scope_key if scope_key is not None else config.state.scope).strip()

    has_text = bool(refine_text.strip())
    has_file = bool(refine_file.strip())

    if not directory:
        action = "none"
        notes = "state dir not set; no restore/save will occur"
    elif refine_flag or has_text or has_file:
        action = "refine"
        notes = "would load latest bundle (if any), apply refinement, and write a new snapshot"
    else:
        action = "restore_or_save"
        notes = (
            "would attempt restore-before-prep using latest.json; on success reuse "
            "without a live run; otherwise would run live and save a new snapshot"
        )

    latest = ""
    if directory and Path(directory).is_dir():
        pointer = SnapshotStore(directory).latest_pointer()
        latest = pointer.path if pointer else ""

    click.echo(json.dumps({
        "plan": {
            "action": action,
            "state_dir": directory,
            "scope_key": scope_value,
            "refine": refine_flag,
            "has_refine_text": has_text,
            "has_refine_file": has_file,
            "latest_snapshot": latest,
            "notes": notes,
        }
    }, indent=2))


@click.command("scope")
@click.option("--model", "model_id", required=True, help="Model identifier")
@click.option("--base-url", required=True, help="API base URL")
@click.option("--tools", "tools_path", default="", help="Tools manifest file")
def scope(model_id: str, base_url: str, tools_path: str) -> None:
    """Print the default scope key for a model, base URL and toolset."""
    click.echo(compute_default_scope(model_id, base_url, compute_toolset_hash(tools_path)))


@click.command("verify")
@state_dir_option
@json_option
@click.pass_context
def verify(ctx: click.Context, state_dir: str | None, json_output: bool) -> None:
    """Check the state directory and latest snapshot. Exits 1 on problems."""
    try:
        store = _store(ctx, state_dir, "verify")
    except PromptStateError as e:
        handle_error(e, json_output=json_output)

    problems = store.verify()
    snapshots = store.list_snapshots()

    if json_output:
        click.echo(json.dumps({
            "ok": not problems,
            "problems": problems,
            "snapshots": [p.name for p in snapshots],
        }, indent=2))
    elif problems:
        console.print(f"[red]✗[/red] {len(problems)} problem(s) in {store.state_dir}")
        for problem in problems:
            console.print(f"  • {problem}")
    else:
        console.print(f"[green]✓[/green] {store.state_dir} ({len(snapshots)} snapshot(s))")

    if problems:
        raise SystemExit(1)


__all__ = ["plan", "refine", "save", "scope", "show", "verify"]
