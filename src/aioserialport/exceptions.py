# -*- coding: utf-8 -*-

"""
aioserialport exceptions
"""

class SerialPortError(Exception):
    """Base exception for all aioserialport errors"""
    pass

class InvalidStateError(SerialPortError):
    """Operation is not allowed in the port's current lifecycle state"""
    pass

class AlreadyOpenError(InvalidStateError):
    """Port is already open"""
    pass

class AlreadyOpeningError(InvalidStateError):
    """Port is already opening"""
    pass

class NotOpenError(InvalidStateError):
    """Port (or binding session) is not open"""
    pass

class SerialConnectionError(SerialPortError):
    """Failed to connect to serial port"""
    pass

class LockHeldError(SerialConnectionError):
    """Device is already opened exclusively elsewhere"""
    pass

class NotFoundError(SerialConnectionError):
    """Device does not exist"""
    pass

class PermissionDeniedError(SerialConnectionError):
    """Not allowed to open the device"""
    pass

class InvalidOptionsError(SerialPortError, ValueError):
    """Invalid serial configuration"""
    pass

class UnsupportedOperationError(SerialPortError):
    """The binding cannot honor the requested operation"""
    pass

class PlatformNotSupportedError(UnsupportedOperationError):
    """Platform not supported for async operations"""
    pass

class SerialIOError(SerialPortError):
    """Device-level I/O failure, including disconnection"""

    def __init__(self, message: str = "I/O error", *, disconnected: bool = False):
        super().__init__(message)
        self.disconnected = disconnected
