# -*- coding: utf-8 -*-

"""
Binding contract.

A binding is the only way a SerialPort touches a device. It hands out a
BindingSession from ``open()`` and every other call takes that session.
"""
from abc import ABC
from abc import abstractmethod
from typing import Any
from typing import List

from ..exceptions import NotOpenError
from ..options import LineStatus
from ..options import PortInfo
from ..options import PortOptions
from ..options import SetOptions


class BindingSession:
    """Opaque handle for one exclusive open instance of a device"""

    def __init__(self, path: str, options: PortOptions):
        self.path = path
        self.options = options
        self.is_open = True

    def __repr__(self):
        state = 'open' if self.is_open else 'closed'
        return f'<{type(self).__name__} {self.path!r} {state}>'


class AbstractBinding(ABC):
    """
    Operations any hardware or simulated driver must implement.

    All operations are coroutines and must eventually complete or raise.
    """

    @abstractmethod
    async def list(self) -> List[PortInfo]:
        """Enumerate devices currently available"""

    @abstractmethod
    async def open(self, path: str, options: PortOptions) -> BindingSession:
        """
        Open ``path`` exclusively.

        Raises:
            LockHeldError: the path is already open
            NotFoundError: no such device
            PermissionDeniedError: access refused by the OS
            InvalidOptionsError: the device rejected ``options``
        """

    @abstractmethod
    async def close(self, session: BindingSession) -> None:
        """Release the session; a second call raises NotOpenError"""

    @abstractmethod
    async def read(self, session: BindingSession, size: int) -> bytes:
        """Return up to ``size`` bytes; ``b''`` when nothing arrived in time"""

    @abstractmethod
    async def write(self, session: BindingSession, data: bytes) -> int:
        """Submit ``data``; returns how many bytes were accepted"""

    @abstractmethod
    async def update(self, session: BindingSession, **changes: Any) -> None:
        """Change settings of an open session; ``baud_rate`` is always supported"""

    @abstractmethod
    async def flush(self, session: BindingSession) -> None:
        """Discard unread input and unsent output"""

    @abstractmethod
    async def drain(self, session: BindingSession) -> None:
        """Wait until submitted writes were transmitted"""

    @abstractmethod
    async def set(self, session: BindingSession, lines: SetOptions) -> None:
        """Drive control lines"""

    @abstractmethod
    async def get(self, session: BindingSession) -> LineStatus:
        """Read status lines"""

    @abstractmethod
    async def get_baud_rate(self, session: BindingSession) -> int:
        """Current baud rate of the session"""

    def _check_open(self, session: BindingSession, action: str = 'use'):
        if session is None or not session.is_open:
            raise NotOpenError(f'Cannot {action} a closed session')

    @staticmethod
    def _check_data(data: Any) -> bytes:
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f'data must be bytes-like, not {type(data).__name__}')
        return bytes(data)
