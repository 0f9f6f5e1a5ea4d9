# -*- coding: utf-8 -*-

"""
Hardware binding on top of pyserial.

The device is opened non-blocking (``timeout=0``, ``write_timeout=0``).
On POSIX readiness is awaited through the event loop's file descriptor
watchers; elsewhere the binding polls.
"""
import asyncio
import errno
import functools
import logging
import os
import serial

from serial.tools import list_ports
from typing import Any
from typing import Callable
from typing import List
from typing import Optional

from .base import AbstractBinding
from .base import BindingSession
from ..exceptions import InvalidOptionsError
from ..exceptions import LockHeldError
from ..exceptions import NotFoundError
from ..exceptions import PermissionDeniedError
from ..exceptions import PlatformNotSupportedError
from ..exceptions import SerialConnectionError
from ..exceptions import SerialIOError
from ..exceptions import UnsupportedOperationError
from ..options import LineStatus
from ..options import PortInfo
from ..options import PortOptions
from ..options import SetOptions

log = logging.getLogger('aioserialport.bindings.serial')

# PortOptions field -> pyserial attribute
_UPDATABLE = {
    'baud_rate': 'baudrate',
    'data_bits': 'bytesize',
    'parity': 'parity',
    'stop_bits': 'stopbits',
}

_DISCONNECT_ERRNOS = (errno.ENXIO, errno.ENODEV, errno.EIO, errno.EBADF)


class SerialSession(BindingSession):

    def __init__(self, path: str, options: PortOptions, serial_instance: serial.Serial):
        super().__init__(path, options)
        self.serial = serial_instance
        self._waiter: Optional[asyncio.Future] = None

    def wake(self):
        if self._waiter is not None and not self._waiter.done():
            self._waiter.set_result(None)


class SerialBinding(AbstractBinding):
    """
    Binding for real devices.

    Features:
    - True async readiness on POSIX (using file descriptors)
    - Efficient polling on Windows (OS limitations)
    - Exclusive access via pyserial's ``exclusive`` flag where supported
    """

    def __init__(self, *, poll_interval: float = 0.005):
        if os.name not in ('posix', 'nt'):
            raise PlatformNotSupportedError(
                f'Platform {os.name} not supported for async serial'
            )
        self._poll_interval = poll_interval
        self._open_paths = set()

    async def _in_executor(self, func: Callable, *args: Any, **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def list(self) -> List[PortInfo]:
        ports = await self._in_executor(list_ports.comports)
        return [_port_info(p) for p in ports]

    async def open(self, path: str, options: PortOptions) -> SerialSession:
        if path in self._open_paths:
            raise LockHeldError(f'Port {path} is already open')

        kwargs = dict(
            port=path,
            baudrate=options.baud_rate,
            bytesize=options.data_bits,
            parity=options.parity,
            stopbits=options.stop_bits,
            xonxoff=options.xon or options.xoff,
            rtscts=options.rtscts,
            timeout=0,
            write_timeout=0,
        )
        if os.name == 'posix':
            # Windows handles are exclusive already
            kwargs['exclusive'] = options.lock

        self._open_paths.add(path)
        try:
            serial_instance = await self._in_executor(serial.Serial, **kwargs)
        except ValueError as e:
            self._open_paths.discard(path)
            raise InvalidOptionsError(f'Invalid options for {path}: {e}') from e
        except (serial.SerialException, OSError) as e:
            self._open_paths.discard(path)
            raise _translate_open_error(path, e) from e
        except BaseException:
            self._open_paths.discard(path)
            raise

        log.debug('opened %s at %d baud', path, options.baud_rate)
        return SerialSession(path, options, serial_instance)

    async def close(self, session: SerialSession) -> None:
        self._check_open(session, 'close')

        session.is_open = False
        session.wake()
        self._open_paths.discard(session.path)
        try:
            session.serial.close()
        except (serial.SerialException, OSError) as e:
            raise SerialIOError(f'Failed to close {session.path}: {e}') from e
        log.debug('closed %s', session.path)

    async def read(self, session: SerialSession, size: int) -> bytes:
        self._check_open(session, 'read from')

        data = self._read_now(session, size)
        if data:
            return data

        await self._wait(session, readable=True)
        if not session.is_open:
            return b''
        return self._read_now(session, size)

    def _read_now(self, session: SerialSession, size: int) -> bytes:
        try:
            return session.serial.read(size)
        except (BlockingIOError, InterruptedError):
            return b''
        except (serial.SerialException, OSError) as e:
            # Port may have been disconnected
            raise _translate_io_error(session.path, e) from e

    async def write(self, session: SerialSession, data: bytes) -> int:
        data = self._check_data(data)
        self._check_open(session, 'write to')

        written = self._write_now(session, data)
        if written:
            return written

        await self._wait(session, readable=False)
        if not session.is_open:
            return 0
        return self._write_now(session, data)

    def _write_now(self, session: SerialSession, data: bytes) -> int:
        try:
            return session.serial.write(data) or 0
        except (BlockingIOError, InterruptedError):
            # Try again later
            return 0
        except serial.SerialTimeoutException:
            return 0
        except (serial.SerialException, OSError) as e:
            raise _translate_io_error(session.path, e) from e

    async def _wait(self, session: SerialSession, *, readable: bool):
        """Wait until the device is ready, closed, or one poll interval passed"""
        loop = asyncio.get_running_loop()
        waiter = loop.create_future()
        session._waiter = waiter

        if os.name == 'posix':
            fd = session.serial.fileno()
            if readable:
                loop.add_reader(fd, session.wake)
            else:
                loop.add_writer(fd, session.wake)
            try:
                await waiter
            finally:
                session._waiter = None
                if readable:
                    loop.remove_reader(fd)
                else:
                    loop.remove_writer(fd)
        else:
            try:
                await asyncio.wait([waiter], timeout=self._poll_interval)
            finally:
                session._waiter = None

    async def update(self, session: SerialSession, **changes: Any) -> None:
        self._check_open(session, 'update')

        unsupported = set(changes) - set(_UPDATABLE)
        if unsupported:
            raise UnsupportedOperationError(
                f'Cannot update {", ".join(sorted(unsupported))} on an open port'
            )

        options = session.options.replace(**changes)

        def apply():
            for name, value in changes.items():
                setattr(session.serial, _UPDATABLE[name], value)

        try:
            await self._in_executor(apply)
        except ValueError as e:
            raise InvalidOptionsError(str(e)) from e
        except (serial.SerialException, OSError) as e:
            raise _translate_io_error(session.path, e) from e
        session.options = options

    async def flush(self, session: SerialSession) -> None:
        self._check_open(session, 'flush')
        try:
            session.serial.reset_input_buffer()
            session.serial.reset_output_buffer()
        except (serial.SerialException, OSError) as e:
            raise _translate_io_error(session.path, e) from e

    async def drain(self, session: SerialSession) -> None:
        self._check_open(session, 'drain')
        try:
            await self._in_executor(session.serial.flush)
        except (serial.SerialException, OSError) as e:
            raise _translate_io_error(session.path, e) from e

    async def set(self, session: SerialSession, lines: SetOptions) -> None:
        # cts and dsr are inputs; pyserial cannot drive them
        self._check_open(session, 'set lines on')
        try:
            session.serial.dtr = lines.dtr
            session.serial.rts = lines.rts
            session.serial.break_condition = lines.brk
        except (serial.SerialException, OSError) as e:
            raise _translate_io_error(session.path, e) from e

    async def get(self, session: SerialSession) -> LineStatus:
        self._check_open(session, 'get lines from')
        try:
            return LineStatus(
                cts=bool(session.serial.cts),
                dsr=bool(session.serial.dsr),
                dcd=bool(session.serial.cd),
            )
        except (serial.SerialException, OSError) as e:
            raise _translate_io_error(session.path, e) from e

    async def get_baud_rate(self, session: SerialSession) -> int:
        self._check_open(session, 'get baud rate from')
        return session.serial.baudrate


def _port_info(port) -> PortInfo:
    """Convert a pyserial ListPortInfo"""
    return PortInfo(
        path=port.device,
        manufacturer=port.manufacturer,
        serial_number=port.serial_number,
        pnp_id=port.hwid,
        location_id=port.location,
        vendor_id=f'{port.vid:04x}' if port.vid is not None else None,
        product_id=f'{port.pid:04x}' if port.pid is not None else None,
        description=port.description,
    )


def _error_number(exc: BaseException) -> Optional[int]:
    if getattr(exc, 'errno', None) is not None:
        return exc.errno
    cause = exc.__context__
    if cause is not None and getattr(cause, 'errno', None) is not None:
        return cause.errno
    return None


def _translate_open_error(path: str, exc: BaseException) -> SerialConnectionError:
    code = _error_number(exc)
    message = str(exc)
    lowered = message.lower()

    if code == errno.ENOENT or 'filenotfounderror' in lowered or 'no such file' in lowered:
        return NotFoundError(f'Port {path} not found: {message}')
    if 'exclusively lock' in lowered or code in (errno.EBUSY, errno.EAGAIN):
        return LockHeldError(f'Port {path} is locked: {message}')
    if code in (errno.EACCES, errno.EPERM) or 'permissionerror' in lowered or 'access is denied' in lowered:
        return PermissionDeniedError(f'Permission denied opening {path}: {message}')
    return SerialConnectionError(f'Failed to open serial port {path}: {message}')


def _translate_io_error(path: str, exc: BaseException) -> SerialIOError:
    code = _error_number(exc)
    disconnected = code in _DISCONNECT_ERRNOS or 'disconnected' in str(exc).lower()
    return SerialIOError(f'I/O error on {path}: {exc}', disconnected=disconnected)
