"""
Unit tests for the mock binding.
"""
import pytest
import asyncio

from aioserialport.bindings.mock import MockBinding
from aioserialport.options import LineStatus
from aioserialport.options import PortOptions
from aioserialport.options import SetOptions
from aioserialport.exceptions import InvalidOptionsError
from aioserialport.exceptions import LockHeldError
from aioserialport.exceptions import NotFoundError
from aioserialport.exceptions import NotOpenError
from aioserialport.exceptions import SerialIOError
from aioserialport.exceptions import UnsupportedOperationError

from .fixtures.virtual_ports import READY
from .fixtures.virtual_ports import TEST_PATH


class TestMockBindingLifecycle:
    """Test opening and closing mock devices."""

    @pytest.mark.asyncio
    async def test_open_unknown_path(self, mock_binding):
        with pytest.raises(NotFoundError):
            await mock_binding.open('/dev/missing', PortOptions())

    @pytest.mark.asyncio
    async def test_open_is_exclusive(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        with pytest.raises(LockHeldError):
            await mock_binding.open(TEST_PATH, PortOptions())

        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_open_seeds_ready_data(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions(baud_rate=57600))
        device = mock_binding.device(TEST_PATH)

        assert device.is_open is True
        assert device.baud_rate == 57600
        assert await mock_binding.read(session, 64) == READY

        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_close_twice_is_an_error(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())
        await mock_binding.close(session)

        with pytest.raises(NotOpenError):
            await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_unread_bytes_do_not_survive_reopen(self, mock_binding):
        """Close discards unread bytes; reopen queues ready data again."""
        session = await mock_binding.open(TEST_PATH, PortOptions())
        await mock_binding.write(session, b'left over')
        await mock_binding.close(session)

        device = mock_binding.device(TEST_PATH)
        assert device.buffer == bytearray()

        session = await mock_binding.open(TEST_PATH, PortOptions())
        assert await mock_binding.read(session, 64) == READY
        assert await mock_binding.read(session, 64) == b''
        assert device.open_count == 2

        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_operations_on_closed_session(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())
        await mock_binding.close(session)

        with pytest.raises(NotOpenError):
            await mock_binding.read(session, 1)
        with pytest.raises(NotOpenError):
            await mock_binding.write(session, b'x')
        with pytest.raises(NotOpenError):
            await mock_binding.flush(session)

    @pytest.mark.asyncio
    async def test_reset_closes_live_sessions(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        mock_binding.reset()

        assert session.is_open is False
        with pytest.raises(NotFoundError):
            mock_binding.device(TEST_PATH)

    def test_registries_are_independent(self):
        first = MockBinding()
        second = MockBinding()
        first.create_port('/dev/ttyONE')

        with pytest.raises(NotFoundError):
            second.device('/dev/ttyONE')

    def test_serial_numbers_are_per_binding(self):
        first = MockBinding()
        first.create_port('/dev/ttyONE')
        first.create_port('/dev/ttyTWO')

        second = MockBinding()
        device = second.create_port('/dev/ttyONE')

        assert device.info.serial_number == '1'
        assert device.info.location_id == 'mock-1'
        assert first.device('/dev/ttyTWO').info.serial_number == '2'

        first.reset()
        assert first.create_port('/dev/ttyONE').info.serial_number == '1'


class TestMockBindingIO:
    """Test reading and writing mock devices."""

    @pytest.mark.asyncio
    async def test_read_is_fifo_and_bounded(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        assert await mock_binding.read(session, 2) == b'RE'
        assert await mock_binding.read(session, 2) == b'AD'
        assert await mock_binding.read(session, 2) == b'Y'

        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_empty_read_returns_nothing(self, silent_device, mock_binding):
        session = await mock_binding.open(silent_device.path, PortOptions())

        data = await asyncio.wait_for(mock_binding.read(session, 16), 1.0)

        assert data == b''
        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_echo(self, mock_binding, simulated_serial_data):
        session = await mock_binding.open(TEST_PATH, PortOptions())
        await mock_binding.read(session, 64)  # READY

        payload = simulated_serial_data['binary_data']
        written = await mock_binding.write(session, payload)

        assert written == len(payload)
        assert await mock_binding.read(session, 1024) == payload
        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_record_and_partial_writes(self, chunked_device, mock_binding):
        session = await mock_binding.open(chunked_device.path, PortOptions())

        written = await mock_binding.write(session, b'A' * 40)

        assert written == 16
        assert chunked_device.last_write == b'A' * 16
        assert chunked_device.recording == bytearray(b'A' * 16)
        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_write_rejects_text(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        with pytest.raises(TypeError):
            await mock_binding.write(session, 'text')

        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_emit_data_wakes_pending_read(self):
        binding = MockBinding(read_poll_interval=5.0)
        device = binding.create_port('/dev/ttyWAIT')
        session = await binding.open(device.path, PortOptions())

        read = asyncio.ensure_future(binding.read(session, 16))
        await asyncio.sleep(0.01)
        assert not read.done()

        binding.emit_data(device.path, b'ping')

        assert await asyncio.wait_for(read, 1.0) == b'ping'
        await binding.close(session)

    @pytest.mark.asyncio
    async def test_close_wakes_pending_read(self):
        binding = MockBinding(read_poll_interval=5.0)
        device = binding.create_port('/dev/ttyWAIT')
        session = await binding.open(device.path, PortOptions())

        read = asyncio.ensure_future(binding.read(session, 16))
        await asyncio.sleep(0.01)
        await binding.close(session)

        assert await asyncio.wait_for(read, 1.0) == b''

    @pytest.mark.asyncio
    async def test_flush_empties_receive_buffer(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        await mock_binding.flush(session)

        assert mock_binding.device(TEST_PATH).buffer == bytearray()
        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_disconnect_fails_next_read(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        mock_binding.disconnect(TEST_PATH)

        with pytest.raises(SerialIOError) as exc_info:
            await mock_binding.read(session, 16)
        assert exc_info.value.disconnected is True

        await mock_binding.close(session)


class TestMockBindingSettings:
    """Test settings, lines and listing."""

    @pytest.mark.asyncio
    async def test_update_baud_rate(self, mock_binding, different_baudrates):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        await mock_binding.update(session, baud_rate=different_baudrates)

        assert await mock_binding.get_baud_rate(session) == different_baudrates
        assert mock_binding.device(TEST_PATH).baud_rate == different_baudrates
        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_update_other_settings_unsupported(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        with pytest.raises(UnsupportedOperationError):
            await mock_binding.update(session, parity='E')

        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_update_invalid_baud_rate(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        with pytest.raises(InvalidOptionsError):
            await mock_binding.update(session, baud_rate=0)

        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_set_and_get_lines(self, mock_binding):
        session = await mock_binding.open(TEST_PATH, PortOptions())

        await mock_binding.set(session, SetOptions(dtr=False))
        status = await mock_binding.get(session)

        assert mock_binding.device(TEST_PATH).lines == SetOptions(dtr=False)
        assert status == LineStatus(cts=True, dsr=False, dcd=False)
        await mock_binding.close(session)

    @pytest.mark.asyncio
    async def test_list(self, mock_binding, different_port_names):
        mock_binding.create_port(different_port_names, serial_number='A1B2')

        ports = await mock_binding.list()
        paths = [info.path for info in ports]

        assert TEST_PATH in paths
        assert different_port_names in paths
        info = next(info for info in ports if info.path == different_port_names)
        assert info.serial_number == 'A1B2'
