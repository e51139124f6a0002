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
"""Encoding and decoding of PN532 host interface frames.

A normal information frame carries up to 254 payload octets::

    00 | 00 FF | LEN | LCS | TFI | PD0 ... PDn | DCS | 00

where LEN counts TFI and payload, LCS makes ``LEN + LCS`` zero and DCS
makes ``TFI + PD0 + ... + PDn + DCS`` zero (all modulo 256). The
acknowledge frames are fixed octet sequences.

"""
from binascii import hexlify

import aiopn532.clf

PREAMBLE = 0x00
POSTAMBLE = 0x00
START_CODE = bytearray.fromhex('00FF')
SOF = bytearray.fromhex('0000FF')

HOST_TO_DEVICE = 0xD4
DEVICE_TO_HOST = 0xD5
ERROR_FRAME_ID = 0x7F

ACK = bytearray.fromhex('0000FF00FF00')
NACK = bytearray.fromhex('0000FFFF0000')
ERR = bytearray.fromhex('0000FF01FF7F8100')

MAX_PAYLOAD_SIZE = 254


def length_checksum(length):
    return (0x100 - length) & 0xFF


def data_checksum(direction, payload):
    return (0x100 - ((direction + sum(payload)) & 0xFF)) & 0xFF


class Frame(object):
    """Base class for all frames exchanged with the chip."""

    def encode(self):
        cname = self.__class__.__module__ + '.' + self.__class__.__name__
        raise NotImplementedError(cname + ".encode")

    def __eq__(self, other):
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(bytes(self.encode()))

    def __repr__(self):
        return "{0}({1})".format(
            type(self).__name__, hexlify(self.encode()).decode())


class AckFrame(Frame):
    """The chip has received a command frame."""

    def encode(self):
        return bytearray(ACK)

    def __repr__(self):
        return "AckFrame()"


class NackFrame(Frame):
    """The receiver asks for retransmission of the last frame."""

    def encode(self):
        return bytearray(NACK)

    def __repr__(self):
        return "NackFrame()"


class ErrorFrame(Frame):
    """The chip's application level error frame, sent when it detected
    a syntax error in the last command frame.

    """
    def encode(self):
        return bytearray(ERR)

    def __repr__(self):
        return "ErrorFrame()"


class DataFrame(Frame):
    """A normal information frame. The *direction* is the frame
    identifier, :const:`HOST_TO_DEVICE` or :const:`DEVICE_TO_HOST`,
    and *payload* the command or response code followed by its
    parameters.

    """
    def __init__(self, direction, payload=b''):
        self.direction = direction
        self.payload = bytearray(payload)

    @property
    def code(self):
        """The command or response code, or None for an empty payload."""
        return self.payload[0] if self.payload else None

    @property
    def body(self):
        """The payload octets that follow the command or response code."""
        return self.payload[1:]

    def encode(self):
        return encode_data_frame(self.direction, self.payload)

    def __repr__(self):
        return "DataFrame(0x{0:02X}, {1})".format(
            self.direction, hexlify(self.payload).decode())


def encode_data_frame(direction, payload):
    """Return the normal information frame that carries *payload* in
    *direction*. Raises :exc:`ValueError` for an unknown direction or
    more than :const:`MAX_PAYLOAD_SIZE` payload octets.

    """
    if direction not in (HOST_TO_DEVICE, DEVICE_TO_HOST):
        raise ValueError("invalid frame direction 0x{0:02X}".format(direction))
    if len(payload) > MAX_PAYLOAD_SIZE:
        raise ValueError("payload size {0} exceeds {1} octets".format(
            len(payload), MAX_PAYLOAD_SIZE))

    length = len(payload) + 1
    head = SOF + bytearray([length, length_checksum(length), direction])
    tail = bytearray([data_checksum(direction, payload), POSTAMBLE])
    return head + bytearray(payload) + tail


def decode_data_frame(octets):
    """Decode the normal information frame in *octets* and return a
    :class:`DataFrame`. Both checksums are verified before anything
    else is looked at.

    **Exceptions**

    * :exc:`~aiopn532.clf.ChecksumError` if the length or data
      checksum does not verify.

    * :exc:`~aiopn532.clf.FrameDecodeError` if the octets do not have
      the structure of a normal information frame.

    """
    octets = bytearray(octets)

    if not octets.startswith(SOF) or len(octets) < 7:
        raise aiopn532.clf.FrameDecodeError("invalid frame start sequence")

    length, lcs = octets[3], octets[4]
    if (length + lcs) & 0xFF != 0:
        raise aiopn532.clf.ChecksumError("frame length checksum error")
    if length == 0 or length != len(octets) - 7:
        raise aiopn532.clf.FrameDecodeError("frame length value mismatch")
    if sum(octets[5:5+length+1]) & 0xFF != 0:
        raise aiopn532.clf.ChecksumError("frame data checksum error")
    if octets[-1] != POSTAMBLE:
        raise aiopn532.clf.FrameDecodeError("missing frame postamble")

    direction = octets[5]
    if direction not in (HOST_TO_DEVICE, DEVICE_TO_HOST):
        raise aiopn532.clf.FrameDecodeError(
            "invalid frame identifier 0x{0:02X}".format(direction))

    return DataFrame(direction, octets[6:5+length])


def decode_frame(octets):
    """Decode any frame: the fixed ACK, NACK and error frames are
    compared octet by octet, everything else must be a normal
    information frame.

    """
    octets = bytearray(octets)
    if octets == ACK:
        return AckFrame()
    if octets == NACK:
        return NackFrame()
    if octets == ERR:
        return ErrorFrame()
    return decode_data_frame(octets)
