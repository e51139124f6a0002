# -*- coding: latin-1 -*-
import aiopn532.clf
from aiopn532.clf.pn532 import Chipset

import errno
import asyncio
import pytest

from base_pn532 import HEX, CMD, RSP, ACK, NAK, ERR, run
from base_pn532 import ScriptedTransport

import logging
logging.basicConfig(level=logging.WARN)
logging_level = logging.getLogger().getEffectiveLevel()
logging.getLogger("aiopn532.clf").setLevel(logging_level)
logging.getLogger("aiopn532.clf.pn532").setLevel(logging_level)


def run_chipset(transport, body, **kwargs):
    async def main():
        chipset = Chipset(transport, **kwargs)
        await chipset.open()
        try:
            return await body(chipset)
        finally:
            await chipset.close()
    return run(main())


class TestCommand(object):
    def test_command_returns_response_body(self):
        transport = ScriptedTransport([ACK(), RSP('03 32010607')])

        async def body(chipset):
            return await chipset.get_firmware_version()

        assert run_chipset(transport, body) == HEX('32010607')
        assert transport.written == [CMD('02')]
        assert transport.closed is True

    def test_response_delivered_one_octet_at_a_time(self):
        stream = ACK() + RSP('03 32010607')
        transport = ScriptedTransport([bytearray([x]) for x in stream])

        async def body(chipset):
            return await chipset.get_firmware_version()

        assert run_chipset(transport, body) == HEX('32010607')

    def test_send_command_returns_data_frame(self):
        transport = ScriptedTransport([ACK(), RSP('01 343536')])

        async def body(chipset):
            return await chipset.send_command(HEX('00 313233'))

        frame = run_chipset(transport, body)
        assert (frame.direction, frame.code, frame.body) == \
            (0xD5, 0x01, HEX('343536'))
        assert transport.written == [HEX('0000ff 05fb d4 00 313233 96 00')]

    def test_response_before_ack_is_protocol_error(self):
        transport = ScriptedTransport([RSP('03 32010607'), ACK()])

        async def body(chipset):
            with pytest.raises(aiopn532.clf.ProtocolError):
                await chipset.get_firmware_version()

        run_chipset(transport, body)

    def test_nack_is_protocol_error(self):
        transport = ScriptedTransport([NAK()])

        async def body(chipset):
            with pytest.raises(aiopn532.clf.ProtocolError):
                await chipset.get_firmware_version()

        run_chipset(transport, body)

    def test_error_frame_is_chipset_error(self):
        transport = ScriptedTransport([ACK(), ERR()])

        async def body(chipset):
            with pytest.raises(Chipset.Error) as excinfo:
                await chipset.get_firmware_version()
            assert excinfo.value.errno == 0x7F

        run_chipset(transport, body)

    def test_unexpected_response_code(self):
        transport = ScriptedTransport([ACK(), RSP('05 000000')])

        async def body(chipset):
            with pytest.raises(aiopn532.clf.ProtocolError):
                await chipset.get_firmware_version()

        run_chipset(transport, body)

    def test_checksum_error_fails_request(self):
        transport = ScriptedTransport(
            [ACK(), HEX('0000ff 02fe d503 27 00')],
            [ACK(), RSP('03 32010607')])

        async def body(chipset):
            with pytest.raises(aiopn532.clf.ChecksumError):
                await chipset.get_firmware_version()
            return await chipset.get_firmware_version()

        assert run_chipset(transport, body) == HEX('32010607')

    def test_noise_before_ack_is_ignored(self):
        transport = ScriptedTransport(
            [HEX('00ffff') + ACK(), RSP('03 32010607')])

        async def body(chipset):
            return await chipset.get_firmware_version()

        assert run_chipset(transport, body) == HEX('32010607')

    def test_payload_too_long_for_frame(self):
        transport = ScriptedTransport()

        async def body(chipset):
            with pytest.raises(ValueError):
                await chipset.send_command(bytearray(255))

        run_chipset(transport, body)
        assert transport.written == []


class TestTimeout(object):
    def test_no_ack_aborts_command(self):
        transport = ScriptedTransport([], [ACK(), RSP('03 32010607')])

        async def body(chipset):
            with pytest.raises(aiopn532.clf.TimeoutError):
                await chipset.get_firmware_version()
            return await chipset.get_firmware_version()

        assert run_chipset(transport, body, ack_timeout=0.01) == \
            HEX('32010607')
        assert transport.written == [CMD('02'), ACK(), CMD('02')]

    def test_no_response_aborts_command(self):
        transport = ScriptedTransport([ACK()])

        async def body(chipset):
            with pytest.raises(aiopn532.clf.TimeoutError):
                await chipset.get_firmware_version()

        run_chipset(transport, body, response_timeout=0.05)
        assert transport.written == [CMD('02'), ACK()]

    def test_late_response_is_discarded(self):
        transport = ScriptedTransport([ACK()], [ACK(), RSP('05 000000')])

        async def body(chipset):
            with pytest.raises(aiopn532.clf.TimeoutError):
                await chipset.get_firmware_version()
            chipset.transport.feed(RSP('03 32010607'))
            await asyncio.sleep(0.01)
            return await chipset.get_general_status()

        assert run_chipset(transport, body, response_timeout=0.05) == \
            HEX('000000')


class TestTransportErrors(object):
    def test_read_error_fails_request(self):
        transport = ScriptedTransport(
            [IOError(errno.EIO, "input/output error")],
            [ACK(), RSP('03 32010607')])

        async def body(chipset):
            with pytest.raises(aiopn532.clf.TransportError) as excinfo:
                await chipset.get_firmware_version()
            assert excinfo.value.errno == errno.EIO
            return await chipset.get_firmware_version()

        assert run_chipset(transport, body) == HEX('32010607')

    def test_device_gone_stops_reading(self):
        transport = ScriptedTransport(
            [IOError(errno.ENODEV, "no such device")])

        async def body(chipset):
            with pytest.raises(aiopn532.clf.TransportError):
                await chipset.get_firmware_version()
            await asyncio.sleep(0)
            assert chipset.is_open is False
            with pytest.raises(aiopn532.clf.TransportError):
                await chipset.get_firmware_version()

        run_chipset(transport, body)
        assert transport.written == [CMD('02')]

    def test_write_error_is_transport_error(self, mocker):
        transport = ScriptedTransport()

        async def body(chipset):
            mocker.patch.object(transport, 'write', autospec=True)
            transport.write.side_effect = IOError(errno.EIO, "write")
            with pytest.raises(aiopn532.clf.TransportError):
                await chipset.get_firmware_version()

        run_chipset(transport, body)

    def test_init_error_is_transport_error(self):
        class FailingTransport(ScriptedTransport):
            async def init(self):
                raise IOError(errno.EACCES, "permission denied")

        async def main():
            chipset = Chipset(FailingTransport())
            with pytest.raises(aiopn532.clf.TransportError) as excinfo:
                await chipset.open()
            assert excinfo.value.errno == errno.EACCES

        run(main())

    def test_command_before_open(self):
        async def main():
            chipset = Chipset(ScriptedTransport())
            with pytest.raises(aiopn532.clf.TransportError):
                await chipset.get_firmware_version()

        run(main())


class TestConcurrency(object):
    def test_commands_are_sent_one_at_a_time(self):
        transport = ScriptedTransport(
            [ACK(), RSP('03 32010607')], [ACK(), RSP('05 000000')])

        async def body(chipset):
            return await asyncio.gather(
                chipset.get_firmware_version(), chipset.get_general_status())

        assert run_chipset(transport, body) == \
            [HEX('32010607'), HEX('000000')]
        assert transport.written == [CMD('02'), CMD('04')]

    def test_cancelled_command_is_aborted(self):
        transport = ScriptedTransport([ACK()], [ACK(), RSP('03 32010607')])

        async def body(chipset):
            task = asyncio.ensure_future(chipset.get_firmware_version())
            await asyncio.sleep(0.02)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            return await chipset.get_firmware_version()

        assert run_chipset(transport, body) == HEX('32010607')
        assert transport.written == [CMD('02'), ACK(), CMD('02')]

    def test_cancel_wins_over_failure_in_same_iteration(self):
        transport = ScriptedTransport([])

        async def body(chipset):
            task = asyncio.ensure_future(chipset.get_firmware_version())
            await asyncio.sleep(0.02)
            chipset._pending.fail(aiopn532.clf.TimeoutError("no ack"))
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            assert chipset._pending is None

        run_chipset(transport, body, ack_timeout=None)
        assert transport.written == [CMD('02'), ACK()]

    def test_unsolicited_frames_are_dropped(self):
        transport = ScriptedTransport([ACK(), RSP('03 32010607')])

        async def body(chipset):
            chipset.transport.feed(ACK(), RSP('15'), HEX('0000ff00ff55'))
            await asyncio.sleep(0.01)
            return await chipset.get_firmware_version()

        assert run_chipset(transport, body) == HEX('32010607')

    def test_close_fails_pending_request(self):
        transport = ScriptedTransport([ACK()])

        async def main():
            chipset = Chipset(transport)
            await chipset.open()
            task = asyncio.ensure_future(chipset.get_firmware_version())
            await asyncio.sleep(0.02)
            await chipset.close()
            with pytest.raises(aiopn532.clf.TransportError):
                await task
            assert transport.closed is True

        run(main())


class TestChipCommands(object):
    @pytest.mark.parametrize("call, args, cmd, rsp, result", [
        ('sam_configuration', ('normal',), '14 010001', '15', None),
        ('sam_configuration', ('virtual', 20, False), '14 021400', '15', None),
        ('rf_configuration', (0x01, b'\x02'), '32 0102', '33', None),
        ('set_max_retries', (), '32 05 ff01ff', '33', None),
        ('set_max_retries', (1, 0, 1), '32 05 010001', '33', None),
        ('in_list_passive_target', (1, 0), '4a 0100', '4b 00', HEX('00')),
        ('in_data_exchange', (1, b'\x30\x04'), '40 013004', '41 00',
         HEX('00')),
        ('in_release', (), '52 00', '53 00', None),
        ('get_general_status', (), '04', '05 000000', HEX('000000')),
    ])
    def test_chip_command(self, call, args, cmd, rsp, result):
        transport = ScriptedTransport([ACK(), RSP(rsp)])

        async def body(chipset):
            return await getattr(chipset, call)(*args)

        assert run_chipset(transport, body) == result
        assert transport.written == [CMD(cmd)]

    def test_general_status_too_short(self):
        transport = ScriptedTransport([ACK(), RSP('05 00')])

        async def body(chipset):
            with pytest.raises(Chipset.Error) as excinfo:
                await chipset.get_general_status()
            assert excinfo.value.errno == 0xFF

        run_chipset(transport, body)

    def test_in_release_error_status(self):
        transport = ScriptedTransport([ACK(), RSP('53 27')])

        async def body(chipset):
            with pytest.raises(Chipset.Error) as excinfo:
                await chipset.in_release(1)
            assert excinfo.value.errno == 0x27
            assert str(excinfo.value) == "Error 0x27: " + Chipset.ERR[0x27]

        run_chipset(transport, body)
