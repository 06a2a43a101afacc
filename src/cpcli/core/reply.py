"""
cpcli - Paginated Replies

This module hides ClearPass server-side pagination behind a single lazy
iterator. A background producer task fetches pages (following the HAL ``next``
links) and hands them over through a single-slot queue; the consumer walks the
items of each page.

Usage:
    async with session.do("GET", "endpoint", page_size=50) as reply:
        while await reply.advance():
            item = reply.current()
        if reply.error:
            ...

or simply ``async for item in reply``, which raises the error at the end.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urljoin

from pydantic import ValidationError as PydanticValidationError

from .exceptions import CPPMError
from .models import HalLinks, WrappedReply
from .transport import Transport

logger = logging.getLogger("cpcli")


@dataclass(frozen=True)
class SingleItem:
    """A reply that is a single resource object."""

    item: Any

    @property
    def items(self) -> List[Any]:
        return [self.item]

    @property
    def next_url(self) -> str:
        return ""


@dataclass(frozen=True)
class CollectionPage:
    """One page of a wrapped collection reply."""

    items: List[Any] = field(default_factory=list)
    links: HalLinks = field(default_factory=HalLinks)

    @property
    def next_url(self) -> str:
        """The next page link, or "" on the last page."""
        next_href = self.links.next.href
        if not next_href or next_href == self.links.self_.href:
            return ""
        return next_href


Page = Union[SingleItem, CollectionPage]


def parse_page(document: Any) -> Page:
    """Classify a decoded reply as a collection page or a single item."""
    if document is None:
        return CollectionPage()
    try:
        wrapped = WrappedReply.model_validate(document)
    except PydanticValidationError:
        return SingleItem(document)
    return CollectionPage(items=wrapped.embedded.items, links=wrapped.links)


# Messages from the producer to the consumer
_PAGE = "page"
_ERROR = "error"
_END = "end"


class Reply:
    """Lazy iterator over the items of a (possibly paginated) REST reply.

    The producer stays at most one page ahead of the consumer. A consumer that
    stops before the end must call ``aclose()`` (or use ``async with``), else
    the producer task stays parked on the queue.
    """

    def __init__(
        self,
        transport: Optional[Transport],
        method: str,
        url: str,
        token: str = "",
        query: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ):
        self._transport = transport
        self.method = method.upper()
        self.url = url
        self._token = token
        self._query = query
        self._body = body

        self._items: List[Any] = []
        self._offset = -1
        self._error: Optional[Exception] = None
        self._exhausted = False
        self._closed = False
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._producer: Optional[asyncio.Task] = None

    @classmethod
    def failed(cls, error: Exception) -> "Reply":
        """A reply that is already in the errored state; it never hits the network."""
        reply = cls(None, "GET", "")
        reply._error = error
        return reply

    # ----- producer -----

    async def _fetch(self, method: str, url: str, query, body) -> Any:
        return await self._transport.exchange(method, url, token=self._token,
                                              query=query, json_body=body)

    async def _produce(self):
        """Fetch pages in link order and hand them to the consumer one by one."""
        method, url, query, body = self.method, self.url, self._query, self._body
        while url and not self._closed:
            try:
                page = parse_page(await self._fetch(method, url, query, body))
            except CPPMError as e:
                if not self._closed:
                    await self._queue.put((_ERROR, e))
                return
            except Exception as e:
                # Forwarded like any other error, the consumer raises it
                logger.error(f"Unexpected error fetching {url}: {e}")
                if not self._closed:
                    await self._queue.put((_ERROR, e))
                return
            if self._closed:
                return
            await self._queue.put((_PAGE, page))
            # Hold the next fetch until the consumer has taken this page
            await self._queue.join()
            next_url = page.next_url
            if next_url:
                logger.debug(f"Following next page link: {next_url}")
                method, url, query, body = "GET", urljoin(url, next_url), None, None
            else:
                url = ""
        if not self._closed:
            await self._queue.put((_END, None))

    # ----- consumer -----

    async def advance(self) -> bool:
        """Move to the next item, fetching pages as needed.

        Returns:
            True if ``current()`` now holds an item, False once the reply is
            exhausted or errored (check ``error``)
        """
        if self._error is not None or self._closed:
            return False
        if self._offset < len(self._items) - 1:
            self._offset += 1
            return True
        if self._exhausted:
            return False
        if self._producer is None:
            self._producer = asyncio.create_task(self._produce())

        while True:
            kind, payload = await self._queue.get()
            self._queue.task_done()
            if kind == _PAGE:
                self._items, self._offset = list(payload.items), 0
                # Empty intermediate pages are skipped, the producer keeps following links
                if self._items:
                    return True
            elif kind == _ERROR:
                self._items, self._offset = [], -1
                self._error = payload
                await self._producer
                return False
            else:
                self._items, self._offset = [], -1
                self._exhausted = True
                await self._producer
                return False

    def current(self) -> Any:
        """The current item. Does not move the iterator."""
        if not 0 <= self._offset < len(self._items):
            raise IndexError("No current item, call advance() first")
        return self._items[self._offset]

    @property
    def error(self) -> Optional[Exception]:
        """The error that ended the iteration, if any."""
        return self._error

    def last_error(self) -> Optional[Exception]:
        return self._error

    async def aclose(self):
        """Stop iterating. An in-flight fetch is allowed to finish, none is started."""
        if self._closed:
            return
        self._closed = True
        producer = self._producer
        if producer is None or producer.done():
            return
        # Free a producer blocked on the full queue, then wait for it to notice
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
        await producer

    async def __aenter__(self) -> "Reply":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()

    def __aiter__(self):
        return self

    async def __anext__(self) -> Any:
        if await self.advance():
            return self.current()
        await self.aclose()
        if self._error is not None:
            raise self._error
        raise StopAsyncIteration
