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
"""Incremental decoder that turns the octet stream received from the
chip into frames.

The decoder owns no transport, it is fed whatever chunks the transport
delivers, from single octets to several frames at once, and returns
the frames and decode errors completed by each chunk. Octets that are
not part of a frame are discarded as noise. A frame starts only with
the complete ``00 00 FF`` sequence. The octets of a candidate frame
are kept until it completes; after a decode error all of them except
the first are examined again, so that a frame start hidden inside a
broken candidate is still found.

"""
from binascii import hexlify

import aiopn532.clf
from . import frame

import logging
log = logging.getLogger(__name__)

SEEK_PREAMBLE, SEEK_START_CODE, SEEK_START_CODE_END, READ_LENGTH, \
    READ_LENGTH_CHECKSUM, ACK_BODY, READ_PAYLOAD, READ_DATA_CHECKSUM, \
    SEEK_POSTAMBLE = range(9)


class StreamDecoder(object):
    def __init__(self):
        self.reset()

    def reset(self):
        """Drop any partially received frame and seek the next preamble."""
        self._state = SEEK_PREAMBLE
        self._length = 0
        self._control = None
        self._body = bytearray()
        self._raw = bytearray()

    @property
    def in_frame(self):
        """True if a frame start code was seen but the frame is not yet
        complete.

        """
        return self._state not in (
            SEEK_PREAMBLE, SEEK_START_CODE, SEEK_START_CODE_END)

    def feed(self, data):
        """Consume the octets in *data* and return a list of the
        :class:`~aiopn532.clf.frame.Frame` and
        :exc:`~aiopn532.clf.FrameDecodeError` instances completed by
        them, in stream order. Never blocks, a frame in progress is
        continued with the next call.

        """
        events = []
        data = bytearray(data)
        index = 0
        while index < len(data):
            replay = self._step(data[index], events)
            index += 1
            if replay:
                data[index:index] = replay
        return events

    def _error(self, events, error):
        # Report the error and return the candidate octets that must
        # be scanned again, all but the first.
        log.debug("frame decode error: %s", error)
        events.append(error)
        replay = self._raw[1:]
        self.reset()
        return replay

    def _step(self, octet, events):
        state = self._state
        self._raw.append(octet)

        if state == SEEK_PREAMBLE:
            if octet == frame.PREAMBLE:
                self._state = SEEK_START_CODE
            else:
                self._raw = bytearray()

        elif state == SEEK_START_CODE:
            if octet == frame.START_CODE[0]:
                self._state = SEEK_START_CODE_END
            else:
                self.reset()

        elif state == SEEK_START_CODE_END:
            if octet == frame.START_CODE[1]:
                self._state = READ_LENGTH
            elif octet != frame.START_CODE[0]:
                self.reset()

        elif state == READ_LENGTH:
            self._length = octet
            self._state = READ_LENGTH_CHECKSUM

        elif state == READ_LENGTH_CHECKSUM:
            if (self._length, octet) == (0x00, 0xFF):
                self._control = frame.AckFrame()
                self._state = ACK_BODY
            elif (self._length, octet) == (0xFF, 0x00):
                self._control = frame.NackFrame()
                self._state = ACK_BODY
            elif (self._length + octet) & 0xFF != 0 or self._length == 0:
                return self._error(events, aiopn532.clf.ChecksumError(
                    "frame length checksum error"))
            else:
                self._body = bytearray()
                self._state = READ_PAYLOAD

        elif state == ACK_BODY:
            if octet != frame.POSTAMBLE:
                return self._error(events, aiopn532.clf.FrameDecodeError(
                    "missing postamble after {0!r}".format(self._control)))
            events.append(self._control)
            self.reset()

        elif state == READ_PAYLOAD:
            self._body.append(octet)
            if len(self._body) == self._length:
                self._state = READ_DATA_CHECKSUM

        elif state == READ_DATA_CHECKSUM:
            if (sum(self._body) + octet) & 0xFF != 0:
                return self._error(events, aiopn532.clf.ChecksumError(
                    "frame data checksum error"))
            self._state = SEEK_POSTAMBLE

        elif state == SEEK_POSTAMBLE:
            if octet != frame.POSTAMBLE:
                return self._error(events, aiopn532.clf.FrameDecodeError(
                    "missing frame postamble"))
            return self._emit(events)

    def _emit(self, events):
        body = self._body
        if body[0] in (frame.HOST_TO_DEVICE, frame.DEVICE_TO_HOST):
            result = frame.DataFrame(body[0], body[1:])
        elif body[0] == frame.ERROR_FRAME_ID and len(body) == 1:
            result = frame.ErrorFrame()
        else:
            return self._error(events, aiopn532.clf.FrameDecodeError(
                "invalid frame identifier 0x{0:02X}".format(body[0])))

        log.log(logging.DEBUG-1, "<<< %s", hexlify(body).decode())
        events.append(result)
        self.reset()
