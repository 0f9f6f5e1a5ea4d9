# -*- coding: utf-8 -*-

"""
Bindings connect a SerialPort to a real or simulated device.
"""

from .base import AbstractBinding
from .base import BindingSession

from .mock import MockBinding
from .mock import MockDevice

from .serial import SerialBinding

__all__ = [
    'AbstractBinding',
    'BindingSession',
    'MockBinding',
    'MockDevice',
    'SerialBinding',
]
