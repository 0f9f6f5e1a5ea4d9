# -*- coding: utf-8 -*-

"""
High-level Streams API for aioserialport.
Provides easy-to-use async serial communication with StreamReader/StreamWriter.
"""
import asyncio
import logging

from typing import Any
from typing import Callable
from typing import Optional
from typing import Tuple

from .bindings.base import AbstractBinding
from .exceptions import InvalidOptionsError
from .port import SerialPort
from .transport import SerialPortTransport

_DEFAULT_LIMIT = 64 * 1024  # 64KB

log = logging.getLogger('aioserialport.streams')


async def open_serial_connection(
    path: Optional[str] = None,
    *,
    binding: Optional[AbstractBinding] = None,
    limit: Optional[int] = None,
    **options: Any
) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
    """
    Open a serial port and return StreamReader/StreamWriter pair.

    This is the main high-level API for most use cases.

    Args:
        path: Serial port name (e.g., '/dev/ttyUSB0' or 'COM3')
        binding: Binding to open the port with (default: SerialBinding)
        limit: StreamReader buffer limit (default: 64KB)
        **options: PortOptions fields (baud_rate, data_bits, parity, ...)

    Returns:
        Tuple of (StreamReader, StreamWriter)

    Raises:
        SerialConnectionError: If the device cannot be opened
        InvalidOptionsError: If configuration is invalid

    Example:
        >>> reader, writer = await open_serial_connection(
        ...     '/dev/ttyUSB0',
        ...     baud_rate=115200
        ... )
        >>> writer.write(b'AT\\r\\n')
        >>> response = await reader.readuntil(b'\\r\\n')
    """
    loop = asyncio.get_running_loop()

    if limit is None:
        limit = _DEFAULT_LIMIT

    port = await _open_port(path, binding, options)

    # Create stream protocol with proper limit
    reader = asyncio.StreamReader(limit=limit)
    protocol = asyncio.StreamReaderProtocol(reader)

    # Create transport
    transport = SerialPortTransport(loop, protocol, port)

    # Create writer
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)

    return reader, writer


async def create_serial_connection(
    loop: asyncio.AbstractEventLoop,
    protocol_factory: Callable[[], asyncio.Protocol],
    path: Optional[str] = None,
    *,
    binding: Optional[AbstractBinding] = None,
    **options: Any
) -> Tuple[SerialPortTransport, asyncio.Protocol]:
    """
    Open a serial port with a custom protocol.

    This is a lower-level API for custom protocol implementations,
    such as framing parsers.

    Example:
        >>> class MyProtocol(asyncio.Protocol):
        ...     def data_received(self, data):
        ...         print(f"Received: {data}")
        ...
        >>> transport, protocol = await create_serial_connection(
        ...     loop,
        ...     MyProtocol,
        ...     '/dev/ttyUSB0',
        ...     baud_rate=115200
        ... )
    """
    port = await _open_port(path, binding, options)

    # Create protocol
    protocol = protocol_factory()

    # Create transport
    transport = SerialPortTransport(loop, protocol, port)

    return transport, protocol


async def _open_port(
    path: Optional[str],
    binding: Optional[AbstractBinding],
    options: dict
) -> SerialPort:
    """Create a SerialPort and open it"""
    if not path:
        raise InvalidOptionsError("'path' must be specified")

    options['auto_open'] = False
    port = SerialPort(path, binding=binding, **options)
    await port.open()
    log.debug('opened %s for streaming', path)
    return port


class SerialStream:
    """
    Context manager for serial stream operations.

    Provides a convenient way to work with serial streams using async context manager.
    """

    def __init__(self, path: Optional[str] = None, **kwargs):
        self._path = path
        self._kwargs = kwargs
        self._reader: Optional[asyncio.StreamReader] = None
        self._writer: Optional[asyncio.StreamWriter] = None

    async def __aenter__(self) -> Tuple[asyncio.StreamReader, asyncio.StreamWriter]:
        """Enter async context manager"""
        self._reader, self._writer = await open_serial_connection(self._path, **self._kwargs)
        return self._reader, self._writer

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Exit async context manager"""
        if self._writer:
            self._writer.close()
            await self._writer.wait_closed()

    @property
    def reader(self) -> asyncio.StreamReader:
        """Get the StreamReader"""
        if self._reader is None:
            raise RuntimeError("Stream not opened")
        return self._reader

    @property
    def writer(self) -> asyncio.StreamWriter:
        """Get the StreamWriter"""
        if self._writer is None:
            raise RuntimeError("Stream not opened")
        return self._writer


# Convenient aliases
open_serial = open_serial_connection
create_connection = create_serial_connection
