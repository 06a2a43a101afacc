"""
cpcli - Output Rendering

Items are written as newline-delimited JSON, so the output of one command can
be piped into another, or as ';'-separated columns picked with dot paths.
"""

import csv
import io
import json
from typing import Any, Callable, List, Optional, Sequence

import typer


def pick(item: Any, path: str) -> Any:
    """Value at a dot path ("a.b.0.c"); None when any step is missing."""
    current = item
    for step in path.split("."):
        if isinstance(current, dict):
            if step not in current:
                return None
            current = current[step]
        elif isinstance(current, list):
            try:
                current = current[int(step)]
            except (ValueError, IndexError):
                return None
        else:
            return None
    return current


def render_value(value: Any) -> str:
    """Text of a single column."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"))


class OutputWriter:
    """Writes items to stdout in the selected format."""

    def __init__(
        self,
        selectors: Optional[Sequence[str]] = None,
        skip_headers: bool = False,
        echo: Callable[[str], Any] = typer.echo,
    ):
        self.selectors: List[str] = list(selectors or [])
        self.skip_headers = skip_headers
        self._echo = echo
        self._header_done = skip_headers
        self.count = 0

    def _row(self, values: Sequence[str]) -> str:
        buffer = io.StringIO()
        csv.writer(buffer, delimiter=";", lineterminator="").writerow(values)
        return buffer.getvalue()

    def write(self, item: Any) -> None:
        self.count += 1
        if not self.selectors:
            self._echo(json.dumps(item))
            return
        if not self._header_done:
            self._echo(self._row(self.selectors))
            self._header_done = True
        self._echo(self._row([render_value(pick(item, path)) for path in self.selectors]))
