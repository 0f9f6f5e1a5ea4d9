# -*- coding: utf-8 -*-

"""
asyncio Transport on top of an open SerialPort.

Lets any ``asyncio.Protocol`` (a StreamReaderProtocol, a framing parser)
consume the port. Protocol backpressure maps onto the port:
``pause_reading()`` suspends the port's read loop.
"""
import asyncio
import functools
import logging

from typing import Any
from typing import List
from typing import Optional

from .events import Closed
from .events import DataReceived
from .events import PortEvent
from .exceptions import NotOpenError
from .port import SerialPort

log = logging.getLogger('aioserialport.transport')


class SerialPortTransport(asyncio.Transport):
    """
    Transport adapter for a SerialPort.

    Features:
    - Reads pushed to the protocol as they arrive
    - Read backpressure through pause_reading()/resume_reading()
    - Write flow control with buffer limits
    - close() waits for buffered writes, abort() does not
    """

    def __init__(
            self,
            loop: asyncio.AbstractEventLoop,
            protocol: asyncio.Protocol,
            port: SerialPort,
            *,
            high_water_mark: int = 65536,
            low_water_mark: int = 16384
        ):
        super().__init__()

        if not port.is_open:
            raise NotOpenError(f'Port {port.path} must be open to build a transport')

        self._loop = loop
        self._protocol = protocol
        self._port = port
        self._closing = False
        self._connection_lost_called = False
        self._close_dispatched = False
        self._protocol_paused = False
        self._error: Optional[BaseException] = None
        self._unsubscribe = None

        # Buffer configuration
        self._high_water_mark = high_water_mark
        self._low_water_mark = low_water_mark

        # Writes handed to the port and not settled yet
        self._pending_writes: List[asyncio.Future] = []
        self._write_buffer_size = 0

        self._loop.call_soon(self._connect)

    def _connect(self):
        """Notify protocol, then start receiving"""
        self._protocol.connection_made(self)
        if self._port.is_open:
            self._unsubscribe = self._port.subscribe(self._on_event, DataReceived, Closed)
        else:
            self._connection_lost(self._error)

    def _on_event(self, event: PortEvent):
        if isinstance(event, DataReceived):
            # Stop reading immediately once closing
            if not self._closing:
                self._protocol.data_received(event.data)
        elif isinstance(event, Closed):
            self._connection_lost(self._error or event.error)

    def write(self, data: bytes):
        """
        Write data asynchronously.

        Data is queued on the port and sent in order.
        """
        if self._closing:
            return

        future = self._port.write(data)
        self._pending_writes.append(future)
        self._write_buffer_size += len(data)
        future.add_done_callback(functools.partial(self._write_done, len(data)))

        # Check flow control
        self._check_flow_control()

    def _write_done(self, size: int, future: asyncio.Future):
        self._pending_writes.remove(future)
        self._write_buffer_size = max(0, self._write_buffer_size - size)

        if not future.cancelled():
            exc = future.exception()
            if exc is not None and not self._closing:
                self._fatal_error(exc)

        # Update flow control
        self._check_flow_control()

        # If closing and buffer empty, complete close
        if self._closing and not self._pending_writes:
            self._complete_close()

    def _check_flow_control(self):
        """Manage flow control based on buffer levels"""
        if (self._protocol_paused and
            self._write_buffer_size <= self._low_water_mark):
            # Resume protocol writing
            self._protocol_paused = False
            try:
                self._protocol.resume_writing()
            except Exception as e:
                self._loop.call_exception_handler({
                    'message': 'protocol.resume_writing() failed',
                    'exception': e,
                    'transport': self,
                    'protocol': self._protocol,
                })
        elif (not self._protocol_paused and self._write_buffer_size >= self._high_water_mark):
            # Pause protocol writing
            self._protocol_paused = True
            try:
                self._protocol.pause_writing()
            except Exception as e:
                self._loop.call_exception_handler({
                    'message': 'protocol.pause_writing() failed',
                    'exception': e,
                    'transport': self,
                    'protocol': self._protocol,
                })

    def close(self):
        """Close the transport once buffered writes are sent"""
        if not self._closing:
            self._closing = True

            # If write buffer empty, close immediately
            if not self._pending_writes:
                self._complete_close()
            # Otherwise, _write_done will call _complete_close when done

    def _complete_close(self):
        """Finalize transport closure"""
        if self._close_dispatched:
            return
        if self._port.is_open:
            self._close_dispatched = True
            self._port.dispatch(self._port.close(), self._port_closed)
        elif not self._port.is_closing:
            self._connection_lost(self._error)

    def _port_closed(self, error: Optional[BaseException], result: Any):
        if error is not None:
            log.debug('%s: close failed: %s', self._port.path, error)

    def is_closing(self) -> bool:
        return self._closing

    def abort(self):
        """Close the transport immediately, failing buffered writes"""
        self._closing = True
        self._write_buffer_size = 0
        self._complete_close()

    def _fatal_error(self, exc: BaseException):
        """Handle fatal errors"""
        if not self._closing:
            log.debug('%s: fatal transport error: %s', self._port.path, exc)
            self._error = exc
            self._closing = True
            self._complete_close()

    def _connection_lost(self, exc: Optional[BaseException]):
        if self._connection_lost_called:
            return
        self._connection_lost_called = True
        self._closing = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        self._loop.call_soon(self._protocol.connection_lost, exc)

    def pause_reading(self):
        """Pause receiving data"""
        self._port.pause()

    def resume_reading(self):
        """Resume receiving data"""
        if not self._closing:
            self._port.resume()

    def is_reading(self) -> bool:
        return not self._closing and not self._port.is_paused()

    def set_protocol(self, protocol: asyncio.BaseProtocol):
        self._protocol = protocol

    def get_protocol(self) -> asyncio.BaseProtocol:
        return self._protocol

    def get_extra_info(self, name: str, default: Any = None) -> Any:
        """Get transport information"""
        if name in ('port', 'serial'):
            return self._port
        elif name == 'path':
            return self._port.path
        elif name == 'write_buffer_size':
            return self._write_buffer_size
        elif name == 'closing':
            return self._closing
        return default

    def can_write_eof(self):
        """Serial ports don't support EOF"""
        return False

    def write_eof(self):
        """Serial ports don't support EOF"""
        raise NotImplementedError("Serial ports do not support EOF")

    def get_write_buffer_size(self) -> int:
        """Get current write buffer size"""
        return self._write_buffer_size

    def get_write_buffer_limits(self):
        return (self._low_water_mark, self._high_water_mark)

    def set_write_buffer_limits(self, high: Optional[int] = None, low: Optional[int] = None):
        """Set write buffer flow control limits"""
        if high is None:
            high = 65536 if low is None else 4 * low
        if low is None:
            low = high // 4

        if not (high >= low >= 0):
            raise ValueError(
                f"high ({high}) must be >= low ({low}) must be >= 0"
            )

        self._high_water_mark = high
        self._low_water_mark = low
        self._check_flow_control()
