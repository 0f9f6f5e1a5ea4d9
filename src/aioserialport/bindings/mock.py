# -*- coding: utf-8 -*-

"""
In-memory binding for tests and examples.

Devices live in a registry owned by one MockBinding instance and must be
created with ``create_port()`` before a port can open them.

Example:
    >>> binding = MockBinding()
    >>> binding.create_port('/dev/ttyMOCK0', echo=True, ready_data=b'READY')
    >>> port = SerialPort('/dev/ttyMOCK0', binding=binding)
"""
import asyncio
import itertools
import logging

from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from .base import AbstractBinding
from .base import BindingSession
from ..exceptions import InvalidOptionsError
from ..exceptions import LockHeldError
from ..exceptions import NotFoundError
from ..exceptions import SerialIOError
from ..exceptions import UnsupportedOperationError
from ..options import LineStatus
from ..options import PortInfo
from ..options import PortOptions
from ..options import SetOptions

log = logging.getLogger('aioserialport.bindings.mock')


class MockDevice:
    """A simulated device; survives any number of open/close cycles"""

    def __init__(
            self,
            path: str,
            *,
            echo: bool = False,
            record: bool = False,
            ready_data: bytes = b'',
            write_chunk_size: Optional[int] = None,
            info: Optional[PortInfo] = None
        ):
        self.path = path
        self.echo = echo
        self.record = record
        self.ready_data = bytes(ready_data)
        self.write_chunk_size = write_chunk_size
        self.info = info or PortInfo(path=path)

        self.buffer = bytearray()
        self.is_open = False
        self.recording = bytearray()
        self.last_write: Optional[bytes] = None
        self.baud_rate: Optional[int] = None
        self.lines: Optional[SetOptions] = None
        self.open_count = 0

        self._session: Optional['MockSession'] = None
        self._failure: Optional[BaseException] = None

    def _feed(self, data: bytes):
        self.buffer.extend(data)
        self._wake()

    def _wake(self):
        if self._session is not None:
            self._session.wake()

    def __repr__(self):
        return f'<MockDevice {self.path!r} open={self.is_open} buffered={len(self.buffer)}>'


class MockSession(BindingSession):

    def __init__(self, path: str, options: PortOptions, device: MockDevice):
        super().__init__(path, options)
        self.device = device
        self._waiter: Optional[asyncio.Future] = None

    def wake(self):
        """Release a read waiting on an empty buffer"""
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)


class MockBinding(AbstractBinding):
    """
    Binding backed by a registry of MockDevice records.

    Unread bytes are dropped when a device closes; ``ready_data`` is queued
    again on every open.
    """

    def __init__(self, *, read_poll_interval: float = 0.05):
        self.read_poll_interval = read_poll_interval
        self._devices: Dict[str, MockDevice] = {}
        self._serial_numbers = itertools.count(1)

    # Registry

    def create_port(
            self,
            path: str,
            *,
            echo: bool = False,
            record: bool = False,
            ready_data: bytes = b'',
            write_chunk_size: Optional[int] = None,
            manufacturer: Optional[str] = 'aioserialport',
            serial_number: Optional[str] = None,
            vendor_id: Optional[str] = None,
            product_id: Optional[str] = None
        ) -> MockDevice:
        """Register a device at ``path``, replacing any previous one"""
        if write_chunk_size is not None and write_chunk_size <= 0:
            raise InvalidOptionsError('write_chunk_size must be positive')

        number = next(self._serial_numbers)
        info = PortInfo(
            path=path,
            manufacturer=manufacturer,
            serial_number=serial_number or str(number),
            pnp_id=f'mock-pnp-{number}',
            location_id=f'mock-{number}',
            vendor_id=vendor_id,
            product_id=product_id,
            description='Mock serial device',
        )
        device = MockDevice(
            path,
            echo=echo,
            record=record,
            ready_data=ready_data,
            write_chunk_size=write_chunk_size,
            info=info,
        )
        self._devices[path] = device
        log.debug('created mock device %s', path)
        return device

    def device(self, path: str) -> MockDevice:
        try:
            return self._devices[path]
        except KeyError:
            raise NotFoundError(
                f'Port does not exist, call create_port({path!r}) first'
            ) from None

    def reset(self):
        """Drop every device, closing any live session"""
        for device in self._devices.values():
            if device._session is not None:
                device._session.is_open = False
                device._wake()
                device._session = None
            device.is_open = False
        self._devices.clear()
        self._serial_numbers = itertools.count(1)

    def emit_data(self, path: str, data: bytes):
        """Queue ``data`` as if the device had sent it"""
        device = self.device(path)
        device._feed(self._check_data(data))

    def disconnect(self, path: str, error: Optional[BaseException] = None):
        """Make the pending or next read on ``path`` fail"""
        device = self.device(path)
        device._failure = error or SerialIOError(
            f'Device {path} disconnected', disconnected=True
        )
        device._wake()

    # Binding contract

    async def list(self) -> List[PortInfo]:
        await asyncio.sleep(0)
        return [device.info for device in self._devices.values()]

    async def open(self, path: str, options: PortOptions) -> MockSession:
        await asyncio.sleep(0)

        device = self.device(path)
        if device.is_open:
            raise LockHeldError(f'Port {path} is locked, cannot open')

        device.is_open = True
        device.open_count += 1
        device.baud_rate = options.baud_rate
        device._failure = None
        device.buffer.clear()
        device.buffer.extend(device.ready_data)

        session = MockSession(path, options, device)
        device._session = session
        log.debug('opened mock device %s', path)
        return session

    async def close(self, session: MockSession) -> None:
        self._check_open(session, 'close')

        device = session.device
        session.is_open = False
        session.wake()
        device.is_open = False
        device._session = None
        device.buffer.clear()
        device.baud_rate = None
        log.debug('closed mock device %s', session.path)

        await asyncio.sleep(0)

    async def read(self, session: MockSession, size: int) -> bytes:
        self._check_open(session, 'read from')
        await asyncio.sleep(0)

        device = session.device
        if not device.buffer and device._failure is None and session.is_open:
            waiter = asyncio.get_running_loop().create_future()
            session._waiter = waiter
            try:
                await asyncio.wait([waiter], timeout=self.read_poll_interval)
            finally:
                session._waiter = None

        if not session.is_open:
            return b''

        if device._failure is not None:
            error, device._failure = device._failure, None
            raise error

        data = bytes(device.buffer[:size])
        del device.buffer[:size]
        return data

    async def write(self, session: MockSession, data: bytes) -> int:
        data = self._check_data(data)
        self._check_open(session, 'write to')
        await asyncio.sleep(0)
        self._check_open(session, 'write to')

        device = session.device
        if device.write_chunk_size is not None:
            data = data[:device.write_chunk_size]

        device.last_write = data
        if device.record:
            device.recording.extend(data)
        if device.echo:
            device._feed(data)
        return len(data)

    async def update(self, session: MockSession, **changes: Any) -> None:
        self._check_open(session, 'update')

        unsupported = set(changes) - {'baud_rate'}
        if unsupported:
            raise UnsupportedOperationError(
                f'Mock binding cannot update {", ".join(sorted(unsupported))}'
            )

        baud_rate = changes.get('baud_rate')
        if baud_rate is None:
            return

        await asyncio.sleep(0)
        session.options = session.options.replace(baud_rate=baud_rate)
        session.device.baud_rate = baud_rate

    async def flush(self, session: MockSession) -> None:
        self._check_open(session, 'flush')
        session.device.buffer.clear()
        session.wake()
        await asyncio.sleep(0)

    async def drain(self, session: MockSession) -> None:
        self._check_open(session, 'drain')
        await asyncio.sleep(0)

    async def set(self, session: MockSession, lines: SetOptions) -> None:
        self._check_open(session, 'set lines on')
        await asyncio.sleep(0)
        session.device.lines = lines

    async def get(self, session: MockSession) -> LineStatus:
        self._check_open(session, 'get lines from')
        await asyncio.sleep(0)
        return LineStatus(cts=True, dsr=False, dcd=False)

    async def get_baud_rate(self, session: MockSession) -> int:
        self._check_open(session, 'get baud rate from')
        await asyncio.sleep(0)
        return session.options.baud_rate
