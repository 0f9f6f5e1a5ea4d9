# -*- coding: utf-8 -*-

"""
Pytest configuration and fixtures for aioserialport tests.
"""
import pytest
import asyncio
from unittest.mock import Mock, patch

from aioserialport import MockBinding

# Import all fixtures from virtual_ports
from .fixtures.virtual_ports import *


@pytest.fixture
def mock_binding():
    """Mock binding with an echoing device that announces READY."""
    binding = MockBinding(read_poll_interval=0.01)
    binding.create_port(TEST_PATH, echo=True, ready_data=READY)
    yield binding
    binding.reset()

@pytest.fixture
def mock_serial():
    """Mock pyserial port for testing."""
    with patch('serial.Serial') as mock:
        instance = Mock()
        instance.is_open = True
        instance.fileno.return_value = 42
        instance.in_waiting = 0
        instance.out_waiting = 0
        instance.baudrate = 9600
        instance.read.return_value = b""
        instance.write.return_value = 0
        instance.close.return_value = None
        mock.return_value = instance
        yield instance

@pytest.fixture
def mock_protocol():
    """Mock asyncio protocol for testing."""
    protocol = Mock(spec=asyncio.Protocol)
    protocol.connection_made = Mock()
    protocol.connection_lost = Mock()
    protocol.data_received = Mock()
    protocol.pause_writing = Mock()
    protocol.resume_writing = Mock()
    return protocol
