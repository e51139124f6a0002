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
import aiopn532.tag
from aiopn532.tag import TlvNotFound

import ndef
from binascii import hexlify

import logging
log = logging.getLogger(__name__)

INVALID_PAGE_ERROR = 0x01
INVALID_RESPONSE_ERROR = 0x02

READ_COMMAND = 0x30
WRITE_COMMAND = 0xA2

NULL_TLV = 0x00
NDEF_TLV = 0x03
TERMINATOR_TLV = 0xFE

NDEF_START_PAGE = 4
PAGE_SIZE = 4
READ_SIZE = 16
PAGES_PER_READ = READ_SIZE // PAGE_SIZE


def read_tlv(memory, offset):
    # Return (type, length, value offset) of the TLV found at
    # offset. NULL and terminator TLVs have no length field.
    tlv_t = memory[offset]
    if tlv_t in (NULL_TLV, TERMINATOR_TLV):
        return tlv_t, None, offset + 1
    tlv_l = memory[offset+1]
    if tlv_l == 0xFF:
        tlv_l = memory[offset+2] << 8 | memory[offset+3]
        return tlv_t, tlv_l, offset + 4
    return tlv_t, tlv_l, offset + 2


def encode_ndef_tlv(data):
    if len(data) > 254:
        raise ValueError("ndef message longer than 254 byte")
    tlv = bytearray([NDEF_TLV, len(data)]) + data
    return tlv + bytearray([TERMINATOR_TLV])


class Type2TagCommandError(aiopn532.tag.TagCommandError):
    """Type 2 Tag specific exceptions. Sets
    :attr:`~aiopn532.tag.TagCommandError.errno` to one of:

    | 1 - INVALID_PAGE_ERROR
    | 2 - INVALID_RESPONSE_ERROR

    """
    errno_str = {
        INVALID_PAGE_ERROR: "invalid page number",
        INVALID_RESPONSE_ERROR: "invalid response data",
    }


def check_page(page):
    if not 0 <= page <= 255:
        log.debug("page %d is not addressable", page)
        raise Type2TagCommandError(INVALID_PAGE_ERROR)


class Type2Tag(aiopn532.tag.Tag):
    """Implementation of the NFC Forum Type 2 Tag memory commands. The
    tag memory is organized in 4 byte pages, a READ returns 4 pages
    at once and a WRITE stores a single page. The NDEF message is held
    in an NDEF TLV that starts at page 4.

    """
    TYPE = "Type2Tag"

    async def read(self, page):
        """Send a READ command to retrieve data from the tag.

        The *page* argument specifies the offset in multiples of 4
        bytes (i.e. page number 1 will return bytes 4 to 19). The data
        returned is normally a byte array of length 16. Only the
        InDataExchange status byte is removed from the response, the
        frame checksum that follows the data never reaches this layer,
        it is verified and dropped by the frame decoder.

        A *page* outside 0 to 255 raises :exc:`Type2TagCommandError`
        with INVALID_PAGE_ERROR. Command execution errors raise
        :exc:`~aiopn532.clf.pn532.Chipset.Error`.

        """
        check_page(page)
        log.debug("read pages {0} to {1}".format(page, page+3))
        return await self.transceive(bytearray([READ_COMMAND, page]))

    async def write(self, page, data):
        """Send a WRITE command to store data on the tag.

        The *page* argument specifies the offset in multiples of 4
        bytes. The *data* argument must be a bytes or bytearray of
        length 4.

        A *page* outside 0 to 255 raises :exc:`Type2TagCommandError`
        with INVALID_PAGE_ERROR. Command execution errors raise
        :exc:`~aiopn532.clf.pn532.Chipset.Error`.

        """
        if len(data) != PAGE_SIZE:
            raise ValueError("data must be a four byte string or array")
        check_page(page)

        log.debug("write %s to page %s", hexlify(data).decode(), page)
        await self.transceive(
            bytearray([WRITE_COMMAND, page]) + bytearray(data))
        return True

    async def read_ndef_message(self):
        """Read the NDEF message octets from the NDEF TLV.

        The TLVs are searched in the first 16 bytes from page 4 on. If
        the NDEF value extends beyond these, the following pages are
        read 16 bytes at a time until the value is complete. Raises
        :exc:`~aiopn532.tag.TlvNotFound` if there is no NDEF TLV before
        the terminator TLV.

        """
        memory = await self.read(NDEF_START_PAGE)

        offset = 0
        while True:
            if offset >= len(memory):
                raise TlvNotFound(NDEF_TLV)
            try:
                tlv_t, tlv_l, value_offset = read_tlv(memory, offset)
            except IndexError:
                raise TlvNotFound(NDEF_TLV)

            log.debug("tlv type {0} length {1} at offset {2}"
                      .format(tlv_t, tlv_l, offset))
            if tlv_t == NDEF_TLV:
                break
            if tlv_t == TERMINATOR_TLV:
                raise TlvNotFound(NDEF_TLV)
            offset = value_offset if tlv_l is None else value_offset + tlv_l

        page = NDEF_START_PAGE + PAGES_PER_READ
        while len(memory) < value_offset + tlv_l:
            data = await self.read(page)
            if not data:
                log.debug("no data returned for page %d", page)
                raise Type2TagCommandError(INVALID_RESPONSE_ERROR)
            memory += data
            page += PAGES_PER_READ

        return bytes(memory[value_offset:value_offset+tlv_l])

    async def write_ndef_message(self, data):
        """Write *data* as the NDEF message. The data is wrapped into an
        NDEF TLV followed by a terminator TLV and written page by page
        from page 4 on, the last page is padded with zeros. Messages
        longer than 254 bytes raise :exc:`ValueError`.

        """
        tlv = encode_ndef_tlv(bytearray(data))
        if len(tlv) % PAGE_SIZE:
            tlv += bytearray(PAGE_SIZE - len(tlv) % PAGE_SIZE)

        log.debug("write ndef tlv %s", hexlify(tlv).decode())
        for index in range(0, len(tlv), PAGE_SIZE):
            page = NDEF_START_PAGE + index // PAGE_SIZE
            await self.write(page, tlv[index:index+PAGE_SIZE])

    async def read_ndef_records(self):
        """Read the NDEF message and return the list of decoded
        :mod:`ndef` records.

        """
        octets = await self.read_ndef_message()
        return list(ndef.message_decoder(octets))

    async def write_ndef_records(self, records):
        """Encode the :mod:`ndef` *records* into an NDEF message and
        write it to the tag.

        """
        octets = b''.join(ndef.message_encoder(records))
        await self.write_ndef_message(octets)
