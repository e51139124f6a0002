# -*- coding: latin-1 -*-
# -----------------------------------------------------------------------------
# Copyright 2026 The aiopn532 authors
#
# Licensed under the EUPL, Version 1.1 or - as soon they
# will be approved by the European Commission - subsequent
# versions of the EUPL (the "Licence");
# You may not use this work except in compliance with the
# Licence.
# You may obtain a copy of the Licence at:
#
# https://joinup.ec.europa.eu/software/page/eupl
#
# Unless required by applicable law or agreed to in
# writing, software distributed under the Licence is
# distributed on an "AS IS" basis,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either
# express or implied.
# See the Licence for the specific language governing
# permissions and limitations under the Licence.
# -----------------------------------------------------------------------------
"""Command/response engine for the NXP PN532.

Every host command is answered by the chip with an ACK frame, followed
by a response frame that carries the command code plus one. The
:class:`Chipset` writes command frames to the transport while a reader
task drains the transport into a :class:`~.decoder.StreamDecoder` and
dispatches the decoded frames to the single pending request. Commands
are queued first in, first out, so that only one command is ever in
flight, the chip can not handle more.

"""
import aiopn532.clf
from .decoder import StreamDecoder
from .frame import AckFrame, NackFrame, ErrorFrame, DataFrame
from .frame import ACK, HOST_TO_DEVICE, DEVICE_TO_HOST, encode_data_frame

import errno
import asyncio
from binascii import hexlify

import logging
log = logging.getLogger(__name__)


class PendingRequest(object):
    # The one outstanding command. The result slot is a future that is
    # completed with the response frame or failed with an exception,
    # whichever comes first, later completions are ignored.

    def __init__(self, payload):
        self.payload = payload
        self.acknowledged = False
        self.future = asyncio.get_running_loop().create_future()
        self.ack_timer = None
        self.response_timer = None

    @property
    def resolved(self):
        return self.future.done()

    def acknowledge(self):
        self.acknowledged = True
        if self.ack_timer is not None:
            self.ack_timer.cancel()

    def resolve(self, frame):
        if not self.future.done():
            self.future.set_result(frame)

    def fail(self, error):
        if not self.future.done():
            self.future.set_exception(error)

    def close(self):
        for timer in (self.ack_timer, self.response_timer):
            if timer is not None:
                timer.cancel()
        if self.future.done() and not self.future.cancelled():
            self.future.exception()  # mark as retrieved


class Chipset(object):
    CMD = {
        # Miscellaneous
        0x00: "Diagnose",
        0x02: "GetFirmwareVersion",
        0x04: "GetGeneralStatus",
        0x06: "ReadRegister",
        0x08: "WriteRegister",
        0x12: "SetParameters",
        0x14: "SAMConfiguration",
        0x16: "PowerDown",
        # RF communication
        0x32: "RFConfiguration",
        # Initiator
        0x4A: "InListPassiveTarget",
        0x40: "InDataExchange",
        0x42: "InCommunicateThru",
        0x44: "InDeselect",
        0x52: "InRelease",
        0x54: "InSelect",
        0x60: "InAutoPoll",
    }
    ERR = {
        0x01: "Time out, the Target has not answered",
        0x02: "Checksum error during RF communication",
        0x03: "Parity error during RF communication",
        0x04: "Erroneous bit count in anticollision",
        0x05: "Framing error during Mifare operation",
        0x06: "Abnormal bit collision in 106 kbps anticollision",
        0x07: "Insufficient communication buffer size",
        0x09: "RF buffer overflow detected by CIU",
        0x0a: "RF field not activated in time by active mode peer",
        0x0b: "Protocol error during RF communication",
        0x0d: "Overheated - antenna drivers deactivated",
        0x0e: "Internal buffer overflow",
        0x10: "Invalid command parameter",
        0x12: "Unsupported command from Initiator",
        0x13: "Format error during RF communication",
        0x14: "Mifare authentication error",
        0x23: "ISO/IEC14443-3 UID check byte is wrong",
        0x25: "Command invalid in current DEP state",
        0x26: "Operation not allowed in this configuration",
        0x27: "Command is not acceptable in the current context",
        0x29: "Released by Initiator while operating as Target",
        0x2A: "ISO/IEC14443-3B, the ID of the card does not match",
        0x2B: "ISO/IEC14443-3B, card previously activated has disappeared",
        0x2D: "An over-current event has been detected",
        0x2E: "NAD missing in DEP frame",
        0x7f: "Invalid command syntax - received error frame",
        0xff: "Insufficient data received from executing chip command",
    }

    class Error(aiopn532.clf.CommunicationError):
        def __init__(self, errno, strerr):
            super(Chipset.Error, self).__init__(errno, strerr)
            self.errno, self.strerr = errno, strerr

        def __str__(self):
            return "Error 0x{0:02X}: {1}".format(self.errno, self.strerr)

    def chipset_error(self, cause):
        if cause is None:
            errno = 0xff
        elif type(cause) is int:
            errno = cause
        else:
            errno = cause[0]

        strerr = self.ERR.get(errno, "Unknown error code")
        raise Chipset.Error(errno, strerr)

    def __init__(self, transport, ack_timeout=0.1, response_timeout=1.0):
        self.transport = transport
        self.decoder = StreamDecoder()
        self.ack_timeout = ack_timeout
        self.response_timeout = response_timeout
        self._queue = asyncio.Lock()
        self._pending = None
        self._reader = None

    @property
    def is_open(self):
        return self._reader is not None and not self._reader.done()

    async def open(self):
        """Initialize the transport and start draining the received
        octet stream into the decoder.

        """
        try:
            await self.transport.init()
        except IOError as error:
            raise aiopn532.clf.TransportError(
                "transport init failed: {0}".format(error), error.errno)
        self.decoder.reset()
        self._reader = asyncio.ensure_future(self._read_loop())

    async def close(self):
        if self._reader is not None:
            self._reader.cancel()
            try:
                await self._reader
            except asyncio.CancelledError:
                pass
            self._reader = None
        if self._pending is not None:
            self._pending.fail(aiopn532.clf.TransportError("chipset closed"))
        self.transport.close()

    async def _read_loop(self):
        while True:
            try:
                data = await self.transport.read()
            except IOError as error:
                log.error("transport read error: %s", error)
                if self._pending is not None:
                    self._pending.fail(aiopn532.clf.TransportError(
                        "transport read failed: {0}".format(error),
                        error.errno))
                if error.errno == errno.ENODEV:
                    log.error("device is gone, stop reading")
                    return
                continue

            for event in self.decoder.feed(data):
                self._dispatch(event)

    def _dispatch(self, event):
        request = self._pending

        if isinstance(event, aiopn532.clf.FrameDecodeError):
            if request is not None and not request.resolved:
                log.error("frame decode error: %s", event)
                request.fail(event)
            else:
                log.debug("frame decode error while idle: %s", event)
            return

        if request is None or request.resolved:
            log.debug("discard unsolicited %r", event)
            return

        if isinstance(event, AckFrame):
            if request.acknowledged:
                log.warning("command was acknowledged twice")
            else:
                log.debug("command acknowledged")
                request.acknowledge()
        elif isinstance(event, NackFrame):
            request.fail(aiopn532.clf.ProtocolError(
                "command frame was not acknowledged"))
        elif isinstance(event, ErrorFrame):
            request.fail(Chipset.Error(0x7F, self.ERR[0x7F]))
        elif isinstance(event, DataFrame):
            if event.direction != DEVICE_TO_HOST:
                log.debug("ignore host to device frame %r", event)
            elif not request.acknowledged:
                request.fail(aiopn532.clf.ProtocolError(
                    "response frame received before ack"))
            else:
                log.debug("command response %r", event)
                request.resolve(event)

    def _ack_timeout(self, request):
        if not request.acknowledged:
            request.fail(aiopn532.clf.TimeoutError(
                "no ack within {0:.3f} s".format(self.ack_timeout)))

    def _response_timeout(self, request, timeout):
        request.fail(aiopn532.clf.TimeoutError(
            "no response within {0:.3f} s".format(timeout)))

    async def send_command(self, payload, timeout=None):
        """Send *payload* in a host command frame and return the
        response :class:`~.frame.DataFrame`. The chip must first
        acknowledge the command within :attr:`ack_timeout` seconds and
        then respond within *timeout* seconds (default is
        :attr:`response_timeout`). Callers are served one at a time in
        the order they called.

        **Exceptions**

        * :exc:`~aiopn532.clf.TimeoutError` if the ACK or the response
          did not arrive in time. The command is then aborted.

        * :exc:`~aiopn532.clf.ProtocolError` if the response arrived
          before the ACK or the chip sent a NACK.

        * :exc:`~aiopn532.clf.FrameDecodeError` or
          :exc:`~aiopn532.clf.TransportError` if received octets could
          not be decoded or the transport failed while waiting.

        * :exc:`Chipset.Error` if the chip sent an error frame.

        """
        if timeout is None:
            timeout = self.response_timeout
        frame = encode_data_frame(HOST_TO_DEVICE, payload)

        async with self._queue:
            if not self.is_open:
                raise aiopn532.clf.TransportError("chipset is not open")

            request = self._pending = PendingRequest(bytearray(payload))
            loop = asyncio.get_running_loop()
            try:
                self.write_frame(frame)
                if self.ack_timeout is not None:
                    request.ack_timer = loop.call_later(
                        self.ack_timeout, self._ack_timeout, request)
                request.response_timer = loop.call_later(
                    timeout, self._response_timeout, request, timeout)
                return await request.future
            except (aiopn532.clf.TimeoutError, asyncio.CancelledError):
                self._abort()
                raise
            finally:
                request.close()
                self._pending = None

    def _abort(self):
        # An ACK frame sent to the chip aborts the current command.
        log.debug("abort command")
        try:
            self.send_ack()
        except IOError as error:
            log.warning("could not abort command: %s", error)

    async def command(self, cmd_code, cmd_data, timeout=None):
        """Send the chip command *cmd_code* with parameters *cmd_data*
        and return the response data that follows the response code.

        """
        self.log_command(cmd_code, cmd_data, timeout)
        frame = await self.send_command(
            bytearray([cmd_code]) + bytearray(cmd_data), timeout)
        if frame.code != cmd_code + 1:
            log.error("unexpected response code")
            raise aiopn532.clf.ProtocolError(
                "response code {0!r} does not match command 0x{1:02X}"
                .format(frame.code, cmd_code))
        return frame.body

    def log_command(self, cmd_code, cmd_data, timeout):
        log.debug("{0} {1} {2}".format(
            self.CMD.get(cmd_code, "0x{0:02X}".format(cmd_code)),
            hexlify(bytearray(cmd_data)).decode(), timeout))

    def write_frame(self, frame):
        """Write a command *frame* to the chip."""
        try:
            self.transport.write(frame)
        except IOError as error:
            raise aiopn532.clf.TransportError(
                "transport write failed: {0}".format(error), error.errno)

    def send_ack(self):
        # Send an ACK frame, usually to terminate most recent command.
        self.transport.write(ACK)

    async def get_firmware_version(self):
        """Send a GetFirmwareVersion command and return the response data
        bytes.

        """
        return await self.command(0x02, b'')

    async def get_general_status(self):
        """Send a GetGeneralStatus command and return the response data
        bytes.

        """
        data = await self.command(0x04, b'')
        if data is None or len(data) < 3:
            self.chipset_error(None)
        return data

    async def sam_configuration(self, mode="normal", timeout=0, irq=True):
        """Send a SAMConfiguration command. The *mode* is one of
        ``normal``, ``virtual``, ``wired`` or ``dual``, the *timeout*
        only matters in virtual card mode (in units of 50 ms).

        """
        mode = ("normal", "virtual", "wired", "dual").index(mode) + 1
        await self.command(0x14, bytearray([mode, timeout, int(irq)]))

    async def rf_configuration(self, cfg_item, cfg_data):
        """Send an RFConfiguration command."""
        await self.command(0x32, bytearray([cfg_item]) + bytearray(cfg_data))

    async def set_max_retries(self, atr=0xFF, psl=0x01, passive=0xFF):
        """Set the number of retries for ATR_REQ, PSL_REQ and passive
        target activation. With *passive* at 0xFF the chip searches
        forever, lower values let InListPassiveTarget report that no
        target was found.

        """
        await self.rf_configuration(0x05, bytearray([atr, psl, passive]))

    async def in_list_passive_target(self, max_tg, brty, initiator_data=b''):
        """Send an InListPassiveTarget command and return the response
        data, starting with the number of targets found.

        """
        data = bytearray([max_tg, brty]) + bytearray(initiator_data)
        return await self.command(0x4A, data)

    async def in_data_exchange(self, tg, data, timeout=None):
        """Send *data* to the target with logical number *tg* and return
        the response data, starting with the status byte.

        """
        data = bytearray([tg]) + bytearray(data)
        return await self.command(0x40, data, timeout)

    async def in_release(self, tg=0):
        """Release the target *tg*, zero for all targets."""
        data = await self.command(0x52, bytearray([tg]))
        if data and data[0] & 0x3f != 0:
            self.chipset_error(data[0] & 0x3f)
