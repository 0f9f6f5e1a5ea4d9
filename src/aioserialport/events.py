# -*- coding: utf-8 -*-

"""
Notifications emitted by a SerialPort.

The set of kinds is closed: every notification is one of the frozen
dataclasses below, each with a fixed payload.
"""
import asyncio

from dataclasses import dataclass
from typing import Callable
from typing import Optional
from typing import Tuple
from typing import Type
from typing import Union


@dataclass(frozen=True)
class Opened:
    """The port finished opening"""


@dataclass(frozen=True)
class Closed:
    """The port is closed; ``error`` is set when a failure caused or marred the close"""
    error: Optional[BaseException] = None


@dataclass(frozen=True)
class ErrorRaised:
    """An operation failed and nobody else was told"""
    error: BaseException


@dataclass(frozen=True)
class DataReceived:
    """A chunk of bytes read from the device (flowing mode)"""
    data: bytes


@dataclass(frozen=True)
class Readable:
    """Buffered data became available to ``read()``"""


PortEvent = Union[Opened, Closed, ErrorRaised, DataReceived, Readable]

EVENT_KINDS: Tuple[Type, ...] = (Opened, Closed, ErrorRaised, DataReceived, Readable)

EventHandler = Callable[[PortEvent], None]


class EventChannel:
    """
    Queue-backed subscription to a port's notifications.

    Iterate it with ``async for`` or call ``get()``; leave it with
    ``close()`` or by using it as an async context manager.

    Example:
        >>> async with port.events(Opened, Closed) as channel:
        ...     async for event in channel:
        ...         if isinstance(event, Closed):
        ...             break
    """

    def __init__(self, unsubscribe: Optional[Callable[[], None]] = None):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._unsubscribe = unsubscribe
        self._closed = False

    def _attach(self, unsubscribe: Callable[[], None]):
        self._unsubscribe = unsubscribe

    def put(self, event: PortEvent):
        """Subscription callback; queues ``event``"""
        if not self._closed:
            self._queue.put_nowait(event)

    async def get(self) -> PortEvent:
        return await self._queue.get()

    def get_nowait(self) -> PortEvent:
        """Raise asyncio.QueueEmpty if nothing is pending"""
        return self._queue.get_nowait()

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self):
        if not self._closed:
            self._closed = True
            if self._unsubscribe is not None:
                self._unsubscribe()

    def __aiter__(self):
        return self

    async def __anext__(self) -> PortEvent:
        if self._closed and self._queue.empty():
            raise StopAsyncIteration
        return await self._queue.get()

    async def __aenter__(self) -> 'EventChannel':
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        self.close()
