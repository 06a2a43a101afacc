"""
cpcli - Login Commands

Open and close the token session (REST API) and the cookie session (web
interface). Cached credentials are reused while the server accepts them.
"""

import logging
from typing import Optional, Tuple

import typer

from ..core.exceptions import ConfigurationError, CPPMError, RestError
from ..core.models import CPPMConfig
from ..core.config_loader import ConfigLoader
from ..core.session import Session
from .context import open_session, report_error, run, save_session, state_of

logger = logging.getLogger("cpcli")


def _profile_config(
    ctx: typer.Context,
    server: Optional[str],
    client_id: Optional[str],
    username: Optional[str],
    verify_ssl: Optional[bool],
) -> CPPMConfig:
    """Profile configuration with command line overrides, prompting for the server."""
    profile = state_of(ctx).profile
    try:
        config = ConfigLoader.load(profile)
    except ConfigurationError:
        if not server:
            server = typer.prompt("ClearPass server (host[:port])")
        config = CPPMConfig(server=server)

    try:
        if server:
            config.server = server
        if client_id is not None:
            config.client_id = client_id
        if username is not None:
            config.username = username
        if verify_ssl is not None:
            config.verify_ssl = verify_ssl
    except ValueError as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(1)
    return config


async def _validate(config: CPPMConfig) -> Optional[Session]:
    """The session if the cached token still works, None if a new login is needed."""
    async with open_session(config) as session:
        try:
            await session.validate(config.server, config.client_id, "",
                                   config.token, config.refresh)
            return session
        except RestError as e:
            if not e.not_authenticated:
                raise
            typer.echo("Authentication with cached credentials failed", err=True)
            return None


def _prompt_secrets(config: CPPMConfig) -> Tuple[str, str]:
    secret = typer.prompt(
        f"Secret for '{config.client_id}' (leave blank if public client)",
        default="", hide_input=True, show_default=False,
    )
    password = ""
    if config.username:
        password = typer.prompt(
            f"Password for '{config.username}' "
            f"(leave blank if auth type is 'client_credentials')",
            default="", hide_input=True, show_default=False,
        )
    return secret, password


async def _login(config: CPPMConfig, secret: str, password: str) -> Session:
    async with open_session(config) as session:
        await session.login(config.server, config.client_id, secret,
                            config.username, password)
        return session


def login_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Ignore cached credentials"),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="ClearPass host[:port]"),
    client_id: Optional[str] = typer.Option(None, "--client", "-c", help="OAuth2 client ID"),
    username: Optional[str] = typer.Option(
        None, "--user", "-u", help="Username, for the password grant"
    ),
    verify_ssl: Optional[bool] = typer.Option(
        None, "--verify-ssl/--no-verify-ssl", help="Verify SSL certificates"
    ),
):
    """
    Log in to the ClearPass REST API.

    Examples:
        cpcli login --server cppm.example.com --client cpcli
        cpcli login --force
    """
    config = _profile_config(ctx, server, client_id, username, verify_ssl)
    if not config.client_id:
        typer.echo("❌ Missing OAuth2 client ID, use --client", err=True)
        raise typer.Exit(1)

    try:
        session = None
        if config.token and not force:
            session = run(_validate(config))
        if session is None:
            secret, password = _prompt_secrets(config)
            session = run(_login(config, secret, password))
        save_session(ctx, config, session)
    except CPPMError as e:
        report_error("login", e)
        raise typer.Exit(1)

    typer.echo(f"✅ Logged in to {config.server}")


async def _web_validate(config: CPPMConfig) -> Optional[Session]:
    """The session if the cached cookies still work, None if a new login is needed."""
    async with open_session(config) as session:
        try:
            await session.web_validate(config.server)
            return session
        except RestError as e:
            if not e.not_authenticated:
                raise
            typer.echo("Authentication with cached cookies failed", err=True)
            return None


async def _web_login(config: CPPMConfig, password: str) -> Session:
    async with open_session(config) as session:
        await session.web_login(config.server, config.username, password)
        return session


def web_login_command(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", help="Ignore cached cookies"),
    server: Optional[str] = typer.Option(None, "--server", "-s", help="ClearPass host[:port]"),
    username: Optional[str] = typer.Option(None, "--user", "-u", help="Web interface username"),
    verify_ssl: Optional[bool] = typer.Option(
        None, "--verify-ssl/--no-verify-ssl", help="Verify SSL certificates"
    ),
):
    """
    Log in to the ClearPass web interface (needed for export and import).

    Examples:
        cpcli web-login --user admin
    """
    config = _profile_config(ctx, server, None, username, verify_ssl)
    if not config.username:
        typer.echo("❌ Missing username, use --user", err=True)
        raise typer.Exit(1)

    try:
        session = None
        if config.cookies and not force:
            session = run(_web_validate(config))
        if session is None:
            password = typer.prompt(f"Password for '{config.username}'", hide_input=True)
            session = run(_web_login(config, password))
        save_session(ctx, config, session)
    except CPPMError as e:
        report_error("web-login", e)
        raise typer.Exit(1)

    typer.echo(f"✅ Web session opened on {config.server}")


async def _web_logout(config: CPPMConfig):
    async with open_session(config) as session:
        try:
            await session.web_logout(config.server)
        except CPPMError as e:
            # The cached cookies are dropped anyway
            logger.warning(f"Web logout failed: {e.message}")
            typer.echo(f"⚠️  Web logout failed: {e.message}", err=True)
            return False
    return True


def web_logout_command(ctx: typer.Context):
    """
    Close the web interface session and forget its cookies.
    """
    profile = state_of(ctx).profile
    try:
        config = ConfigLoader.load(profile)
    except ConfigurationError as e:
        typer.echo(f"❌ {e.message}", err=True)
        raise typer.Exit(1)

    closed = run(_web_logout(config))
    try:
        ConfigLoader.save_credentials(profile, config.server, config.token, config.refresh, [])
    except ConfigurationError as e:
        report_error("web-logout", e)
        raise typer.Exit(1)

    if closed:
        typer.echo(f"✅ Web session closed on {config.server}")
