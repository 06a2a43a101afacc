"""
cpcli - Export and Import Commands

Download and upload configuration archives through the web interface session
opened with 'cpcli web-login'.
"""

from pathlib import Path
from typing import Optional

import typer

from ..core.exceptions import CPPMError, is_not_authenticated
from ..core.models import CPPMConfig
from .context import load_config, open_session, report_error, run


async def _export(config: CPPMConfig, resource: str, password: str,
                  output: Optional[Path]) -> Path:
    async with open_session(config) as session:
        await session.web_validate(config.server)
        filename, stream = await session.export(resource, password)
        target = output or Path(filename)
        async with stream:
            with open(target, "wb") as f:
                async for chunk in stream.aiter_bytes():
                    f.write(chunk)
        return target


def export_command(
    ctx: typer.Context,
    resource: str = typer.Argument(..., help="Resource to export: 'Service', 'Devices', etc."),
    password: str = typer.Option(
        "", "--password", "-p", help="Password to protect the downloaded archive"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Target file (default: name suggested by the server)"
    ),
):
    """
    Export a resource using the web interface.

    Examples:
        cpcli export Service --password s3cret
    """
    config = load_config(ctx)
    try:
        target = run(_export(config, resource, password, output))
    except (CPPMError, OSError) as e:
        _fail("export", e)

    typer.echo(f"✅ Resource {resource} exported to file {target}")


async def _import(config: CPPMConfig, file: Path, resource_type: str, password: str):
    async with open_session(config) as session:
        await session.web_validate(config.server)
        await session.import_file(str(file), resource_type, password)


def import_command(
    ctx: typer.Context,
    file: Path = typer.Argument(..., help="Archive to import"),
    resource_type: str = typer.Argument(..., help="Resource type: 'Service', 'Devices', etc."),
    password: str = typer.Option("", "--password", "-p", help="Password of the archive"),
):
    """
    Import a resource archive using the web interface.

    Examples:
        cpcli import Service.zip Service --password s3cret
    """
    config = load_config(ctx)
    try:
        run(_import(config, file, resource_type, password))
    except CPPMError as e:
        _fail("import", e)

    typer.echo(f"✅ File {file} imported as {resource_type}")


def _fail(operation: str, error: Exception):
    if isinstance(error, OSError):
        typer.echo(f"❌ Could not write export: {error}", err=True)
    else:
        report_error(operation, error)
        if is_not_authenticated(error):
            typer.echo("💡 Run 'cpcli web-login' first", err=True)
    raise typer.Exit(1)
