"""Main CLI entry point.

    promptstate show --state-dir ~/.local/state/promptstate
    promptstate refine --text "tighten temperature to 0.2" --user-prompt "hello"
    promptstate plan --refine
"""

import sys

import click
from rich.console import Console

from promptstate import __version__
from promptstate.foundation.config import load_config
from promptstate.foundation.errors import PromptStateError
from promptstate.foundation.logging import configure_logging
from promptstate.interface.cli.commands.state_cmd import (
    plan,
    refine,
    save,
    scope,
    show,
    verify,
)

console = Console(stderr=True)


def cli_entrypoint() -> None:
    """Wrapped entrypoint with global error handling.

    Catches PromptStateError and displays it instead of a traceback.
    Called from pyproject.toml [project.scripts].
    """
    try:
        main(standalone_mode=False)
    except click.ClickException as e:
        e.show()
        sys.exit(e.exit_code)
    except click.Abort:
        console.print("\n  [dim]Aborted[/]")
        sys.exit(130)
    except PromptStateError as e:
        from promptstate.interface.cli.core.error_handler import handle_error

        handle_error(e)


@click.group()
@click.version_option(__version__, prog_name="promptstate")
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False),
    default=None,
    help="Config file (default: .promptstate/config.yaml, then ~/.promptstate/config.yaml)",
)
@click.pass_context
def main(ctx: click.Context, debug: bool, config_path: str | None) -> None:
    """Persist and restore prompting session state.

    \b
    Examples:
        promptstate show
        promptstate save bundle.json --state-dir ./state
        promptstate refine --text "be terse" --user-prompt "hello"
        promptstate plan --scope scope-1
    """
    config = load_config(config_path)
    configure_logging(debug=debug or config.debug)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


main.add_command(show)
main.add_command(save)
main.add_command(refine)
main.add_command(plan)
main.add_command(scope)
main.add_command(verify)
