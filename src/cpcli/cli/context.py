"""
cpcli - CLI Context

Profile selection, session construction and error reporting shared by all
commands.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Coroutine, List, Optional

import typer

from ..core.config_loader import ConfigLoader
from ..core.exceptions import ConfigurationError
from ..core.models import CPPMConfig, StoredCookie
from ..core.session import Session
from ..shared.error_handlers import ErrorResponse, handle_command_error
from ..shared.error_sanitizer import ErrorMessageSanitizer

logger = logging.getLogger("cpcli")


@dataclass
class CLIState:
    """Global options, stored in the typer context."""

    profile: str = "default"
    verbose: bool = False


def state_of(ctx: typer.Context) -> CLIState:
    return ctx.obj if isinstance(ctx.obj, CLIState) else CLIState()


def load_config(ctx: typer.Context) -> CPPMConfig:
    """Configuration of the selected profile; exits when there is none."""
    profile = state_of(ctx).profile
    try:
        return ConfigLoader.load(profile)
    except ConfigurationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(1)


def open_session(config: CPPMConfig, cookies: Optional[List[StoredCookie]] = None) -> Session:
    """A session primed with the cached credentials of ``config``."""
    return Session(
        address=config.server,
        token=config.token,
        refresh=config.refresh,
        cookies=config.cookies if cookies is None else cookies,
        verify_ssl=config.verify_ssl,
    )


def save_session(ctx: typer.Context, config: CPPMConfig, session: Session) -> None:
    """Persist the profile settings and the session credentials."""
    profile = state_of(ctx).profile
    ConfigLoader.save_profile(profile, config)
    ConfigLoader.save_credentials(profile, config.server, session.token, session.refresh,
                                  session.cookies)


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    return asyncio.run(coro)


def report_error(operation: str, error: Exception) -> ErrorResponse:
    """Print a sanitized message for ``error`` on stderr and return its classification."""
    response = handle_command_error(operation, error)
    typer.echo(f"❌ {ErrorMessageSanitizer.sanitize_for_user(error, operation)}", err=True)
    logger.debug(f"Technical details: {ErrorMessageSanitizer.sanitize_for_logs(error)}")
    return response
