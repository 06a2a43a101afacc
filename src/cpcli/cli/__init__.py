"""
cpcli - CLI Interface

Command-line interface for the ClearPass REST API and web interface. Data
commands print newline-delimited JSON on stdout; messages go to stderr.
"""

import logging
import sys

import typer

from .auth import login_command, web_login_command, web_logout_command
from .context import CLIState
from .profiles import delete_command, list_command
from .request import endpoints_command, guests_command, make_method_command
from .transfer import export_command, import_command

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Create main CLI app
app = typer.Typer(
    name="cpcli",
    help="Command-line interface for Aruba ClearPass",
    add_completion=False
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    profile: str = typer.Option(
        "default", "--profile", "-p", envvar="CPPM_PROFILE", help="Profile name"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
):
    """Command-line interface for Aruba ClearPass."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
        force=True,
    )
    ctx.obj = CLIState(profile=profile, verbose=verbose)


# Register commands
app.command(name="login", help="Log in to the REST API")(login_command)
app.command(name="web-login", help="Log in to the web interface")(web_login_command)
app.command(name="web-logout", help="Log out of the web interface")(web_logout_command)
for _method in ("GET", "POST", "PUT", "PATCH", "DELETE"):
    app.command(name=_method.lower(), help=f"Send a {_method} request")(
        make_method_command(_method))
app.command(name="endpoints", help="List endpoints")(endpoints_command)
app.command(name="guests", help="List guest accounts")(guests_command)
app.command(name="export", help="Export a resource archive")(export_command)
app.command(name="import", help="Import a resource archive")(import_command)
app.command(name="list-profiles", help="List all configured profiles")(list_command)
app.command(name="delete-profile", help="Delete a profile")(delete_command)


def main():
    """CLI entry point."""
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("\n\nOperation cancelled by user", err=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
