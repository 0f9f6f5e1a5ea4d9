"""
Test fixtures for aioserialport testing.

Provides simulated devices on the mock binding, sample payloads and an
event recorder for observing port notifications.
"""

from .virtual_ports import (
    mock_device_config,
    simulated_serial_data,
    chunked_device,
    silent_device,
    different_baudrates,
    different_port_names,
    serial_with_preloaded_data,
)
from .events import EventRecorder

__all__ = [
    'mock_device_config',
    'simulated_serial_data',
    'chunked_device',
    'silent_device',
    'different_baudrates',
    'different_port_names',
    'serial_with_preloaded_data',
    'EventRecorder',
]
