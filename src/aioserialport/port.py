# -*- coding: utf-8 -*-

"""
SerialPort: lifecycle state machine and duplex byte stream.

A port drives exactly one binding session per open cycle:

    CLOSED -> OPENING -> OPEN -> CLOSING -> CLOSED

Lifecycle calls check the state synchronously before awaiting anything, so
overlapping calls from one caller are rejected rather than queued. While
open, a background task reads from the binding and hands chunks to
consumers, pausing whenever the consumer side is full.
"""
import asyncio
import collections
import enum
import functools
import inspect
import logging

from dataclasses import fields
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Deque
from typing import List
from typing import Optional
from typing import Type

from .bindings.base import AbstractBinding
from .bindings.base import BindingSession
from .bindings.serial import SerialBinding
from .events import Closed
from .events import DataReceived
from .events import ErrorRaised
from .events import EVENT_KINDS
from .events import EventChannel
from .events import EventHandler
from .events import Opened
from .events import PortEvent
from .events import Readable
from .exceptions import AlreadyOpenError
from .exceptions import AlreadyOpeningError
from .exceptions import InvalidOptionsError
from .exceptions import InvalidStateError
from .exceptions import NotOpenError
from .exceptions import SerialPortError
from .options import LineStatus
from .options import PortInfo
from .options import PortOptions
from .options import SetOptions

log = logging.getLogger('aioserialport.port')

Callback = Callable[[Optional[BaseException], Any], None]

_OPTION_FIELDS = frozenset(f.name for f in fields(PortOptions))


class PortState(enum.Enum):
    CLOSED = 'closed'
    OPENING = 'opening'
    OPEN = 'open'
    CLOSING = 'closing'


class _Subscription:
    __slots__ = ('handler', 'kinds', 'once')

    def __init__(self, handler: EventHandler, kinds: tuple, once: bool):
        self.handler = handler
        self.kinds = kinds
        self.once = once

    def matches(self, event: PortEvent) -> bool:
        return not self.kinds or isinstance(event, self.kinds)

    @property
    def wants_data(self) -> bool:
        return not self.kinds or DataReceived in self.kinds


class _PendingWrite:
    __slots__ = ('data', 'future')

    def __init__(self, data: bytes, future: asyncio.Future):
        self.data = data
        self.future = future


class SerialPort:
    """
    Asynchronous serial port.

    Args:
        path: Device identifier (e.g. '/dev/ttyUSB0' or 'COM3')
        options: PortOptions (default: PortOptions())
        callback: Called as ``callback(error, None)`` when the automatic
            open finishes; without it a failed automatic open is reported
            as an ErrorRaised event
        binding: Binding used for all I/O (default: a new SerialBinding)
        **overrides: PortOptions fields overriding ``options``

    Raises:
        InvalidOptionsError: If path or options are invalid

    With ``auto_open`` (the default) the constructor must run inside an
    event loop. The port is OPENING when it returns, so writes can be
    queued at once.

    Example:
        >>> port = SerialPort('/dev/ttyUSB0', baud_rate=115200, auto_open=False)
        >>> await port.open()
        >>> await port.write(b'AT\\r\\n')
        >>> reply = await port.read()
        >>> await port.close()
    """

    def __init__(
            self,
            path: str,
            options: Optional[PortOptions] = None,
            callback: Optional[Callback] = None,
            *,
            binding: Optional[AbstractBinding] = None,
            **overrides: Any
        ):
        if not isinstance(path, str) or not path:
            raise InvalidOptionsError(f'path must be a non-empty string, got {path!r}')

        if options is None:
            options = PortOptions()
        if overrides:
            options = options.replace(**overrides)

        self.path = path
        self.options = options
        self.binding = binding if binding is not None else SerialBinding()

        self._state = PortState.CLOSED
        self._session: Optional[BindingSession] = None
        self._subscribers: List[_Subscription] = []

        # Read side
        self._buffer = bytearray()
        self._paused = False
        self._capacity = asyncio.Event()
        self._capacity.set()
        self._read_waiters: List[asyncio.Future] = []
        self._read_task: Optional[asyncio.Task] = None
        self._flush_generation = 0

        # Write side
        self._write_queue: Deque[_PendingWrite] = collections.deque()
        self._pending_write: Optional[_PendingWrite] = None
        self._writer_task: Optional[asyncio.Task] = None

        # Session release still running after a fatal error
        self._release: Optional[asyncio.Task] = None

        if options.auto_open:
            asyncio.get_running_loop()
            self._begin_open()
            self.dispatch(self._open_session(), callback)

    def __repr__(self):
        return f'<SerialPort {self.path!r} {self._state.value}>'

    # State

    @property
    def state(self) -> PortState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is PortState.OPEN

    @property
    def is_opening(self) -> bool:
        return self._state is PortState.OPENING

    @property
    def is_closing(self) -> bool:
        return self._state is PortState.CLOSING

    @property
    def read_suspended(self) -> bool:
        """True while the read loop must not ask the binding for more data"""
        return self._paused or len(self._buffer) >= self.options.high_water_mark

    @property
    def pending_writes(self) -> int:
        """Writes queued or in flight"""
        return len(self._write_queue) + (self._pending_write is not None)

    def _set_state(self, state: PortState):
        log.debug('%s: %s -> %s', self.path, self._state.value, state.value)
        self._state = state

    def _require_open(self, action: str):
        if self._state is not PortState.OPEN:
            raise NotOpenError(f'Cannot {action}, port {self.path} is not open')

    # Lifecycle

    async def open(self) -> None:
        """
        Open the port through the binding.

        Raises:
            AlreadyOpeningError: An open is already in progress
            AlreadyOpenError: The port is open
            InvalidStateError: The port is closing
            SerialConnectionError: The binding could not open the device
        """
        self._begin_open()
        await self._open_session()

    def _begin_open(self):
        if self._state is PortState.OPENING:
            raise AlreadyOpeningError(f'Port {self.path} is already opening')
        if self._state is PortState.OPEN:
            raise AlreadyOpenError(f'Port {self.path} is already open')
        if self._state is PortState.CLOSING:
            raise InvalidStateError(f'Port {self.path} is closing')

        self._set_state(PortState.OPENING)

    async def _open_session(self):
        try:
            release = self._release
            if release is not None:
                # The previous session must be gone before the device is opened again
                await asyncio.shield(release)
                self._release = None
            session = await self.binding.open(self.path, self.options)
        except BaseException as exc:
            self._set_state(PortState.CLOSED)
            self._fail_writes(f'Port {self.path} failed to open')
            log.debug('%s: open failed: %s', self.path, exc)
            raise

        self._session = session
        self._buffer.clear()
        self._update_capacity()
        self._set_state(PortState.OPEN)

        loop = asyncio.get_running_loop()
        self._read_task = loop.create_task(self._read_loop(session))
        self._start_writer()
        self._emit(Opened())

    async def close(self) -> None:
        """
        Close the port.

        Reading stops at once, queued writes fail with NotOpenError and the
        write in flight (if any) is allowed to finish before the session is
        released. A Closed event follows in every case.

        Raises:
            NotOpenError: The port is not open
        """
        self._require_open('close')

        session = self._session
        self._set_state(PortState.CLOSING)
        error = None
        try:
            try:
                await self._stop_reading()
                self._fail_writes(f'Port {self.path} closed before the write was sent')
                writer = self._writer_task
                if writer is not None:
                    await asyncio.wait([writer])
            except asyncio.CancelledError:
                # Give up on the write in flight but never leave the session open
                self._abort_writes(f'Port {self.path} closed during the write')
                if session.is_open:
                    await asyncio.shield(self.binding.close(session))
                raise
            await self.binding.close(session)
        except Exception as exc:
            error = exc
            raise
        finally:
            self._session = None
            self._set_state(PortState.CLOSED)
            self._wake_readers(closed=True)
            self._emit(Closed(error=error))

    async def _stop_reading(self):
        task, self._read_task = self._read_task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])

    async def _fail(self, exc: BaseException):
        """
        Fatal I/O error: go straight to CLOSED.

        Notifications go out before the session is released; a following
        ``open()`` waits for the release to finish.
        """
        session = self._session
        log.debug('%s: fatal error: %s', self.path, exc)

        self._session = None
        self._read_task = None
        self._release = release = asyncio.get_running_loop().create_task(
            self._release_session(session)
        )
        self._set_state(PortState.CLOSED)
        self._abort_writes(f'Port {self.path} closed after an I/O error')

        self._wake_readers(closed=True)
        self._emit(ErrorRaised(exc))
        self._emit(Closed(error=exc))

        await asyncio.shield(release)

    async def _release_session(self, session: BindingSession):
        try:
            await self.binding.close(session)
        except (SerialPortError, OSError) as exc:
            log.warning('%s: failed to release session after error: %s', self.path, exc)

    def _abort_writes(self, message: str):
        writer, self._writer_task = self._writer_task, None
        self._fail_writes(message, include_pending=True)
        if writer is not None:
            writer.cancel()

    async def __aenter__(self) -> 'SerialPort':
        if not self.is_open:
            await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self.is_open:
            await self.close()

    # Settings and control lines

    async def update(self, baud_rate: Optional[int] = None, **changes: Any) -> None:
        """
        Change settings of the open port; the state never changes.

        Raises:
            NotOpenError: The port is not open
            InvalidOptionsError: A new value is invalid
            UnsupportedOperationError: The binding cannot change a setting
        """
        self._require_open('update')
        if baud_rate is not None:
            changes['baud_rate'] = baud_rate
        if not changes:
            raise InvalidOptionsError('update() needs at least one setting')

        options = self.options.replace(
            **{name: value for name, value in changes.items() if name in _OPTION_FIELDS}
        )
        await self.binding.update(self._session, **changes)
        self.options = options

    async def flush(self) -> None:
        """
        Discard unread data on both sides.

        Bytes buffered by the port and any read in flight while the flush
        runs are dropped, never delivered.
        """
        self._require_open('flush')

        self._flush_generation += 1
        self._discard_buffer()
        try:
            await self.binding.flush(self._session)
        finally:
            self._flush_generation += 1

    async def drain(self) -> None:
        """Wait until writes submitted so far were transmitted"""
        self._require_open('drain')

        waiting = [pending.future for pending in self._write_queue]
        if self._pending_write is not None:
            waiting.append(self._pending_write.future)
        if waiting:
            await asyncio.wait(waiting)
            self._require_open('drain')

        await self.binding.drain(self._session)

    async def set(self, **lines: bool) -> None:
        """Drive control lines, e.g. ``set(dtr=False, brk=True)``"""
        self._require_open('set control lines')
        try:
            options = SetOptions(**lines)
        except TypeError as e:
            raise InvalidOptionsError(str(e)) from e
        await self.binding.set(self._session, options)

    async def get(self) -> LineStatus:
        self._require_open('get status lines')
        return await self.binding.get(self._session)

    async def get_baud_rate(self) -> int:
        self._require_open('get baud rate')
        return await self.binding.get_baud_rate(self._session)

    # Writing

    def write(self, data: bytes) -> asyncio.Future:
        """
        Queue ``data`` for the device.

        Returns a future resolving to the number of bytes written. Writes
        reach the binding one at a time in submission order. A write while
        the port is closing or closed fails with NotOpenError.

        A failure is only seen by whoever awaits the future. Without a
        consumer use ``port.dispatch(port.write(data))``, which reports it
        as an ErrorRaised event instead.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()

        if self._state in (PortState.CLOSING, PortState.CLOSED):
            future.set_exception(NotOpenError(f'Cannot write, port {self.path} is not open'))
            return future

        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f'data must be bytes-like, not {type(data).__name__}')

        data = bytes(data)
        if not data:
            future.set_result(0)
            return future

        self._write_queue.append(_PendingWrite(data, future))
        self._start_writer()
        return future

    def _start_writer(self):
        if (self._state is PortState.OPEN and self._write_queue
                and self._writer_task is None):
            loop = asyncio.get_running_loop()
            self._writer_task = loop.create_task(self._write_loop(self._session))

    async def _write_loop(self, session: BindingSession):
        try:
            while self._write_queue and self._state is PortState.OPEN:
                pending = self._write_queue.popleft()
                if pending.future.done():
                    # Cancelled by the caller
                    continue

                self._pending_write = pending
                try:
                    written = await self._write_all(session, pending.data)
                except asyncio.CancelledError:
                    if not pending.future.done():
                        pending.future.set_exception(
                            NotOpenError(f'Port {self.path} closed during the write')
                        )
                    raise
                except (SerialPortError, OSError, TypeError) as exc:
                    if not pending.future.done():
                        pending.future.set_exception(exc)
                else:
                    if not pending.future.done():
                        pending.future.set_result(written)
                finally:
                    self._pending_write = None
        finally:
            if self._writer_task is asyncio.current_task():
                self._writer_task = None

    async def _write_all(self, session: BindingSession, data: bytes) -> int:
        # The binding may accept fewer bytes than offered
        view = memoryview(data)
        total = 0
        while total < len(data):
            total += await self.binding.write(session, bytes(view[total:]))
        return total

    def _fail_writes(self, message: str, include_pending: bool = False):
        while self._write_queue:
            pending = self._write_queue.popleft()
            if not pending.future.done():
                pending.future.set_exception(NotOpenError(message))
        if include_pending and self._pending_write is not None:
            if not self._pending_write.future.done():
                self._pending_write.future.set_exception(NotOpenError(message))

    # Reading

    async def _read_loop(self, session: BindingSession):
        try:
            while self._state is PortState.OPEN:
                if self.read_suspended:
                    await self._capacity.wait()
                    continue

                generation = self._flush_generation
                data = await self.binding.read(session, self._read_size())

                if self._state is not PortState.OPEN:
                    return
                if generation != self._flush_generation:
                    if data:
                        log.debug('%s: dropped %d bytes read during a flush', self.path, len(data))
                    continue
                if data:
                    self._push(data)
        except (SerialPortError, OSError) as exc:
            if self._state is PortState.OPEN and self._session is session:
                await self._fail(exc)

    def _read_size(self) -> int:
        chunk = self.options.read_chunk_size
        if self._flowing():
            return chunk
        return max(1, min(chunk, self.options.high_water_mark - len(self._buffer)))

    def _flowing(self) -> bool:
        return not self._paused and any(sub.wants_data for sub in self._subscribers)

    def _push(self, data: bytes):
        was_empty = not self._buffer
        self._buffer.extend(data)

        if self._flowing():
            self._flow()
            return

        self._update_capacity()
        self._wake_readers(closed=False)
        if was_empty:
            self._emit(Readable())

    def _flow(self):
        while self._buffer and self._flowing():
            chunk = bytes(self._buffer)
            self._buffer.clear()
            self._emit(DataReceived(chunk))
        self._update_capacity()

    def _schedule_flow(self):
        if not self._buffer:
            return
        try:
            asyncio.get_running_loop().call_soon(self._flow)
        except RuntimeError:
            self._flow()

    def _update_capacity(self):
        if self.read_suspended:
            self._capacity.clear()
        else:
            self._capacity.set()

    def _discard_buffer(self):
        if self._buffer:
            log.debug('%s: discarding %d buffered bytes', self.path, len(self._buffer))
            self._buffer.clear()
        self._update_capacity()

    def _wake_readers(self, closed: bool):
        waiters, self._read_waiters = self._read_waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(closed)

    def read_nowait(self, n: int = -1) -> bytes:
        """Return up to ``n`` buffered bytes (all when ``n < 0``), or b'' when none are buffered"""
        if n == 0 or not self._buffer:
            return b''
        if n < 0 or n >= len(self._buffer):
            data = bytes(self._buffer)
            self._buffer.clear()
        else:
            data = bytes(self._buffer[:n])
            del self._buffer[:n]
        self._update_capacity()
        return data

    async def read(self, n: int = -1) -> bytes:
        """
        Wait for data and return up to ``n`` bytes.

        Returns b'' if the port is closed, or closes while waiting, with
        nothing buffered.
        """
        loop = asyncio.get_running_loop()
        while not self._buffer:
            if self._state in (PortState.CLOSING, PortState.CLOSED):
                return b''
            waiter = loop.create_future()
            self._read_waiters.append(waiter)
            if await waiter:
                return b''
        return self.read_nowait(n)

    def pause(self):
        """Stop reading from the device until ``resume()``"""
        self._paused = True
        self._update_capacity()

    def resume(self):
        self._paused = False
        self._update_capacity()
        self._schedule_flow()

    def is_paused(self) -> bool:
        return self._paused

    def pipe(self, consumer: Callable[[bytes], Any]) -> asyncio.Future:
        """
        Feed every chunk to ``consumer`` until the port closes.

        ``consumer`` may be a plain or async callable; the next chunk is
        only pulled once the previous call finished. Consumer failures are
        reported as ErrorRaised events.
        """
        return self.dispatch(self._pump(consumer))

    async def _pump(self, consumer: Callable[[bytes], Any]):
        while True:
            chunk = await self.read()
            if not chunk:
                break
            result = consumer(chunk)
            if inspect.isawaitable(result):
                await result

    # Notifications

    def subscribe(
            self,
            handler: EventHandler,
            *kinds: Type,
            once: bool = False
        ) -> Callable[[], None]:
        """
        Call ``handler(event)`` for events of the given kinds (all when none given).

        Subscribing to DataReceived switches the port to flowing mode.
        Returns a function that removes the subscription.
        """
        for kind in kinds:
            if kind not in EVENT_KINDS:
                raise TypeError(f'{kind!r} is not a port event kind')

        subscription = _Subscription(handler, kinds, once)
        self._subscribers.append(subscription)
        if subscription.wants_data:
            self._schedule_flow()
        return functools.partial(self._unsubscribe, subscription)

    def _unsubscribe(self, subscription: _Subscription):
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def events(self, *kinds: Type) -> EventChannel:
        """Subscribe an EventChannel; close it to unsubscribe"""
        channel = EventChannel()
        channel._attach(self.subscribe(channel.put, *kinds))
        return channel

    def _emit(self, event: PortEvent):
        for subscription in list(self._subscribers):
            if subscription not in self._subscribers or not subscription.matches(event):
                continue
            if subscription.once:
                self._unsubscribe(subscription)
            try:
                subscription.handler(event)
            except Exception as e:
                self._report_handler_error(event, e)

    def _report_handler_error(self, event: PortEvent, exc: Exception):
        context = {
            'message': f'{type(event).__name__} handler failed',
            'exception': exc,
            'port': self,
        }
        try:
            asyncio.get_running_loop().call_exception_handler(context)
        except RuntimeError:
            log.error('%s: %s', self.path, context['message'], exc_info=exc)

    # Callback adapter

    def dispatch(
            self,
            awaitable: Awaitable,
            callback: Optional[Callback] = None
        ) -> asyncio.Future:
        """
        Run ``awaitable`` in the background.

        With ``callback`` the outcome is passed as ``callback(error, result)``;
        without it a failure is emitted as an ErrorRaised event.
        """
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            if inspect.iscoroutine(awaitable):
                awaitable.close()
            raise
        future = asyncio.ensure_future(awaitable, loop=loop)
        future.add_done_callback(functools.partial(self._settle, callback))
        return future

    def _settle(self, callback: Optional[Callback], future: asyncio.Future):
        if future.cancelled():
            return
        error = future.exception()
        if callback is not None:
            callback(error, None if error is not None else future.result())
        elif error is not None:
            self._emit(ErrorRaised(error))

    # Discovery

    @staticmethod
    async def list(binding: Optional[AbstractBinding] = None) -> List[PortInfo]:
        """Devices the binding can see"""
        return await list_ports(binding)


async def list_ports(binding: Optional[AbstractBinding] = None) -> List[PortInfo]:
    """
    List available devices.

    Example:
        >>> for info in await list_ports():
        ...     print(info.path, info.manufacturer)
    """
    if binding is None:
        binding = SerialBinding()
    return await binding.list()
