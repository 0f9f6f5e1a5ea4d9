# -*- coding: utf-8 -*-

"""
aioserialport - asynchronous serial port library with pluggable bindings

Features:
- Lifecycle state machine safe against overlapping open/close calls
- Ordered, lossless byte stream with consumer backpressure
- pyserial binding for real devices, mock binding for tests
- High-level Streams API and low-level Transport API
"""

from .port import SerialPort
from .port import PortState
from .port import list_ports

from .options import PortOptions
from .options import SetOptions
from .options import LineStatus
from .options import PortInfo

from .events import Opened
from .events import Closed
from .events import ErrorRaised
from .events import DataReceived
from .events import Readable
from .events import EventChannel

from .bindings import AbstractBinding
from .bindings import BindingSession
from .bindings import MockBinding
from .bindings import MockDevice
from .bindings import SerialBinding

from .transport import SerialPortTransport
from .streams import open_serial_connection
from .streams import create_serial_connection
from .streams import SerialStream
from .streams import open_serial
from .streams import create_connection

from .exceptions import SerialPortError
from .exceptions import InvalidStateError
from .exceptions import AlreadyOpenError
from .exceptions import AlreadyOpeningError
from .exceptions import NotOpenError
from .exceptions import SerialConnectionError
from .exceptions import LockHeldError
from .exceptions import NotFoundError
from .exceptions import PermissionDeniedError
from .exceptions import InvalidOptionsError
from .exceptions import UnsupportedOperationError
from .exceptions import PlatformNotSupportedError
from .exceptions import SerialIOError

__version__ = "0.1.0"
__license__ = "MIT"

__all__ = [
    # Port
    'SerialPort',
    'PortState',
    'list_ports',

    # Options
    'PortOptions',
    'SetOptions',
    'LineStatus',
    'PortInfo',

    # Events
    'Opened',
    'Closed',
    'ErrorRaised',
    'DataReceived',
    'Readable',
    'EventChannel',

    # Bindings
    'AbstractBinding',
    'BindingSession',
    'MockBinding',
    'MockDevice',
    'SerialBinding',

    # Transports
    'SerialPortTransport',

    # High-level API
    'open_serial_connection',
    'create_serial_connection',
    'SerialStream',
    'open_serial',
    'create_connection',

    # Exceptions
    'SerialPortError',
    'InvalidStateError',
    'AlreadyOpenError',
    'AlreadyOpeningError',
    'NotOpenError',
    'SerialConnectionError',
    'LockHeldError',
    'NotFoundError',
    'PermissionDeniedError',
    'InvalidOptionsError',
    'UnsupportedOperationError',
    'PlatformNotSupportedError',
    'SerialIOError',
]
