# -*- coding: utf-8 -*-

"""
Port configuration and line-status records.

Values follow pyserial's constants so options can be handed to
``serial.Serial`` unchanged.
"""
import dataclasses
import serial

from dataclasses import dataclass
from typing import Any
from typing import Optional

from .exceptions import InvalidOptionsError

DATA_BITS = (serial.FIVEBITS, serial.SIXBITS, serial.SEVENBITS, serial.EIGHTBITS)
STOP_BITS = (serial.STOPBITS_ONE, serial.STOPBITS_ONE_POINT_FIVE, serial.STOPBITS_TWO)
PARITIES = tuple(serial.PARITY_NAMES)

_PARITY_BY_NAME = {name.lower(): value for value, name in serial.PARITY_NAMES.items()}

_FLAGS = ('rtscts', 'xon', 'xoff', 'xany', 'lock', 'auto_open')


@dataclass(frozen=True)
class PortOptions:
    """
    Settings a port is opened with.

    ``parity`` accepts pyserial constants (``serial.PARITY_EVEN``) or their
    names (``'even'``). ``high_water_mark`` bounds the bytes buffered for a
    consumer that is not reading; ``read_chunk_size`` bounds a single read
    issued to the binding.
    """
    baud_rate: int = 9600
    data_bits: int = serial.EIGHTBITS
    stop_bits: float = serial.STOPBITS_ONE
    parity: str = serial.PARITY_NONE
    rtscts: bool = False
    xon: bool = False
    xoff: bool = False
    xany: bool = False
    lock: bool = True
    auto_open: bool = True
    high_water_mark: int = 65536
    read_chunk_size: int = 4096

    def __post_init__(self):
        if isinstance(self.parity, str) and self.parity.lower() in _PARITY_BY_NAME:
            object.__setattr__(self, 'parity', _PARITY_BY_NAME[self.parity.lower()])
        self.validate()

    def validate(self):
        """Raise InvalidOptionsError for the first invalid field"""
        _check_positive('baud_rate', self.baud_rate)
        _check_positive('high_water_mark', self.high_water_mark)
        _check_positive('read_chunk_size', self.read_chunk_size)

        if self.data_bits not in DATA_BITS:
            raise InvalidOptionsError(
                f"Invalid 'data_bits' {self.data_bits!r}, expected one of {DATA_BITS}"
            )
        if self.stop_bits not in STOP_BITS:
            raise InvalidOptionsError(
                f"Invalid 'stop_bits' {self.stop_bits!r}, expected one of {STOP_BITS}"
            )
        if self.parity not in PARITIES:
            raise InvalidOptionsError(
                f"Invalid 'parity' {self.parity!r}, expected one of {PARITIES}"
            )
        for name in _FLAGS:
            if not isinstance(getattr(self, name), bool):
                raise InvalidOptionsError(f"'{name}' must be a boolean")

    def replace(self, **changes: Any) -> 'PortOptions':
        """Return a validated copy with ``changes`` applied"""
        try:
            return dataclasses.replace(self, **changes)
        except TypeError as e:
            # Unknown field names
            raise InvalidOptionsError(str(e)) from e


def _check_positive(name: str, value: Any):
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InvalidOptionsError(f"'{name}' must be a positive integer, got {value!r}")


@dataclass(frozen=True)
class SetOptions:
    """Control lines to drive on an open port"""
    brk: bool = False
    cts: bool = False
    dsr: bool = False
    dtr: bool = True
    rts: bool = True


@dataclass(frozen=True)
class LineStatus:
    """Status lines read from an open port"""
    cts: bool = False
    dsr: bool = False
    dcd: bool = False


@dataclass(frozen=True)
class PortInfo:
    """One entry of a device listing"""
    path: str
    manufacturer: Optional[str] = None
    serial_number: Optional[str] = None
    pnp_id: Optional[str] = None
    location_id: Optional[str] = None
    vendor_id: Optional[str] = None
    product_id: Optional[str] = None
    description: Optional[str] = None
