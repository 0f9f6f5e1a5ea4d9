"""
Fixtures for simulated serial devices.
Provides mock-binding devices with different behaviors for reliable testing.
"""
import pytest

TEST_PATH = '/dev/exists'
READY = b'READY'

CHUNKED_PATH = '/dev/ttyCHUNKED'
SILENT_PATH = '/dev/ttySILENT'
PRELOADED_PATH = '/dev/ttyPRELOADED'


@pytest.fixture
def mock_device_config():
    """
    Provide standard port configuration.
    """
    return {
        'baud_rate': 115200,
        'data_bits': 8,
        'parity': 'N',
        'stop_bits': 1,
        'rtscts': False,
        'xon': False,
        'xoff': False,
        'auto_open': False,
    }

@pytest.fixture
def simulated_serial_data():
    """
    Provide simulated serial data for testing.
    """
    return {
        'simple_response': b"OK\r\n",
        'multiline_response': b"Line 1\r\nLine 2\r\nLine 3\r\n",
        'binary_data': bytes(range(256)),
        'large_data': b"X" * 4096,
        'error_response': b"ERROR: Invalid command\r\n"
    }

@pytest.fixture
def chunked_device(mock_binding):
    """
    Recording device that accepts at most 16 bytes per write,
    forcing the port to re-issue partial writes.
    """
    return mock_binding.create_port(CHUNKED_PATH, record=True, write_chunk_size=16)

@pytest.fixture
def silent_device(mock_binding):
    """
    Device that never sends anything by itself.
    """
    return mock_binding.create_port(SILENT_PATH)

@pytest.fixture(params=[9600, 57600, 115200, 230400, 921600])
def different_baudrates(request):
    """
    Parametrized fixture for testing different baud rates.
    """
    return request.param

@pytest.fixture(params=['/dev/ttyUSB0', '/dev/ttyACM0', 'COM1', 'COM3'])
def different_port_names(request):
    """
    Parametrized fixture for testing different port names.
    """
    return request.param

@pytest.fixture
def serial_with_preloaded_data(mock_binding):
    """
    Device that announces a line of data on every open.
    """
    return mock_binding.create_port(PRELOADED_PATH, ready_data=b"PRELOADED_DATA:12345\r\n")
