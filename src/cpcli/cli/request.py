"""
cpcli - REST Commands

Run REST operations against the ClearPass API and print the resulting items.
Every item is printed as it arrives, pages are fetched on demand.
"""

import json
import sys
from typing import Any, Callable, Iterator, List, Optional

import typer

from ..core.exceptions import CPPMError, ValidationError
from ..core.filters import parse_filter_args
from ..core.models import CPPMConfig
from ..core.reply import Reply
from ..core.session import Session
from .context import load_config, open_session, report_error, run
from .output import OutputWriter

FILTER_HELP = "Filter: JSON object, key=value, or key (must exist). Repeatable."

# (session, request body, profile config) -> reply
Builder = Callable[[Session, Any, CPPMConfig], Reply]


def read_bodies(body: Optional[str], use_stdin: bool = True) -> Iterator[Any]:
    """Request bodies: the --body option, else one per NDJSON line piped on stdin.

    Yields None once when there is no body at all.
    """
    if body is not None:
        try:
            yield json.loads(body)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON body: {e}")
        return

    found = False
    if use_stdin and not sys.stdin.isatty():
        for line in sys.stdin:
            line = line.strip()
            if not line:
                continue
            try:
                document = json.loads(line)
            except json.JSONDecodeError as e:
                typer.echo(f"❌ Skipping invalid input line {line!r}: {e}", err=True)
                continue
            found = True
            yield document
    if not found:
        yield None


async def _drain(reply: Reply, writer: OutputWriter) -> None:
    """Print every item of a reply, raising the error that ended it."""
    async with reply:
        async for item in reply:
            writer.write(item)


async def _run_requests(
    config: CPPMConfig,
    build: Builder,
    bodies: Iterator[Any],
    writer: OutputWriter,
    operation: str,
) -> bool:
    """Run one request per body; returns False if any of them failed."""
    ok = True
    async with open_session(config) as session:
        for body in bodies:
            try:
                await _drain(build(session, body, config), writer)
            except CPPMError as e:
                ok = False
                if report_error(operation, e).should_abort():
                    break
    return ok


def _execute(
    ctx: typer.Context,
    operation: str,
    build: Builder,
    selectors: Optional[List[str]],
    skip_headers: bool,
    body: Optional[str] = None,
    use_stdin: bool = True,
):
    config = load_config(ctx)
    writer = OutputWriter(selectors, skip_headers)
    try:
        ok = run(_run_requests(config, build, read_bodies(body, use_stdin), writer, operation))
    except ValidationError as e:
        report_error(operation, e)
        raise typer.Exit(1)
    if not ok:
        raise typer.Exit(1)


def make_method_command(method: str) -> Callable:
    """Build the command for one HTTP method."""

    def command(
        ctx: typer.Context,
        path: str = typer.Argument(..., help="API path, e.g. 'endpoint' or 'guest/12'"),
        selectors: Optional[List[str]] = typer.Argument(
            None, help="Attributes to print (dot paths); default is NDJSON"
        ),
        filter: Optional[List[str]] = typer.Option(None, "--filter", "-f", help=FILTER_HELP),
        page_size: Optional[int] = typer.Option(
            None, "--page-size", help="Items per page (default from profile)"
        ),
        body: Optional[str] = typer.Option(
            None, "--body", "-b", help="JSON request body (default: NDJSON lines on stdin)"
        ),
        skip_headers: bool = typer.Option(
            False, "--skip-headers", help="Do not print the header line"
        ),
    ):
        try:
            query = parse_filter_args(filter)
        except ValidationError as e:
            report_error(method.lower(), e)
            raise typer.Exit(1)

        def build(session: Session, item: Any, config: CPPMConfig) -> Reply:
            size = page_size if page_size is not None else config.page_size
            return session.do(method, path, query, item, size if method == "GET" else 0)

        _execute(ctx, method.lower(), build, selectors, skip_headers, body)

    command.__doc__ = f"Send a {method} request to the ClearPass REST API."
    return command


def _list_command(resource: str) -> Callable:

    def command(
        ctx: typer.Context,
        selectors: Optional[List[str]] = typer.Argument(
            None, help="Attributes to print (dot paths); default is NDJSON"
        ),
        mac: str = typer.Option("", "--mac", "-m", help="MAC address, any format"),
        filter: Optional[List[str]] = typer.Option(None, "--filter", "-f", help=FILTER_HELP),
        page_size: Optional[int] = typer.Option(
            None, "--page-size", help="Items per page (default from profile)"
        ),
        skip_headers: bool = typer.Option(
            False, "--skip-headers", help="Do not print the header line"
        ),
    ):
        try:
            query = parse_filter_args(filter)
        except ValidationError as e:
            report_error(resource, e)
            raise typer.Exit(1)

        def build(session: Session, item: Any, config: CPPMConfig) -> Reply:
            size = page_size if page_size is not None else config.page_size
            lister = session.endpoints if resource == "endpoints" else session.guests
            return lister(mac=mac, filter=query, page_size=size)

        _execute(ctx, resource, build, selectors, skip_headers, use_stdin=False)

    command.__doc__ = f"List {resource}, optionally filtered by MAC address."
    return command


endpoints_command = _list_command("endpoints")
guests_command = _list_command("guests")
