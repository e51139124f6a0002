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
"""Tags found by the PN532 and the errors raised by tag commands.

A :class:`Tag` wraps the :class:`~aiopn532.clf.RemoteTarget` that a
scan returned together with the :class:`~aiopn532.clf.pn532.Chipset`
that found it. Commands are exchanged with the tag through the chip's
InDataExchange command, addressed by the logical target number.

"""
import aiopn532.clf

from binascii import hexlify

import logging
log = logging.getLogger(__name__)

# InDataExchange status that the chip reports when the tag answered
# with a frame it could not interpret; the data is still usable.
FORMAT_ERROR = 0x13


class Tag(object):
    """The base class for tag objects returned by
    :meth:`aiopn532.ContactlessFrontend.scan`.

    """
    TYPE = None

    def __init__(self, chipset, target):
        self._chipset = chipset
        self._target = target

    def __str__(self):
        s = self.type + ' ' + repr(self._product_name)
        s += " tg={0}".format(self.tg)
        if self.atqa is not None:
            s += " atqa={0}".format(hexlify(self.atqa).decode())
        if self.sak is not None:
            s += " sak={0:02x}".format(self.sak)
        if self.uid:
            s += " uid=" + self.uid
        return s

    @property
    def _product_name(self):
        return "NXP NTAG/Ultralight"

    @property
    def chipset(self):
        return self._chipset

    @property
    def target(self):
        """The :class:`~aiopn532.clf.RemoteTarget` the tag was found as."""
        return self._target

    @property
    def type(self):
        return self.TYPE

    @property
    def tg(self):
        """The logical target number assigned by the chip."""
        return self.target.tg

    @property
    def atqa(self):
        """The two byte answer to request (SENS_RES)."""
        return self.target.sens_res

    @property
    def sak(self):
        """The select acknowledge (SEL_RES) byte."""
        sel_res = self.target.sel_res
        return sel_res[0] if sel_res else None

    @property
    def identifier(self):
        """The unique tag identifier as bytes."""
        return bytes(self.target.sdd_res or b'')

    @property
    def uid(self):
        """The unique tag identifier as lower case hex digits separated
        by colons, for example ``'de:ad:be:ef'``.

        """
        return ':'.join('{0:02x}'.format(x) for x in self.identifier)

    async def transceive(self, data, timeout=None):
        """Send *data* to the tag with the InDataExchange command and
        return the response data that follows the status byte.

        A status of 0x13 (format error) is logged and the response
        data returned anyway, any other non-zero status raises
        :exc:`~aiopn532.clf.pn532.Chipset.Error`.

        """
        log.debug(">> %s", hexlify(data).decode())
        rsp = await self.chipset.in_data_exchange(self.tg, data, timeout)
        if not rsp:
            self.chipset.chipset_error(None)

        status = rsp[0] & 0x3f
        if status == FORMAT_ERROR:
            log.warning("format error status from tag, response may "
                        "be incomplete")
        elif status != 0:
            log.debug("tag command failed with status 0x%02x", status)
            self.chipset.chipset_error(status)

        log.debug("<< %s", hexlify(rsp[1:]).decode())
        return rsp[1:]

    async def authenticate(self, block, key=b'\xFF\xFF\xFF\xFF\xFF\xFF',
                           key_type='A'):
        """Send a MIFARE Classic authentication command for *block*
        with the 6 byte *key*, used as key A or key B depending on
        *key_type*. The command is built from the key and the tag
        identifier and the raw InDataExchange response, status byte
        included, is returned without further interpretation.

        """
        if len(key) != 6:
            raise ValueError("key must be a six byte string or array")
        cmd = {'A': 0x60, 'B': 0x61}[key_type.upper()]
        log.debug("authenticate block %d with key %s", block, key_type)
        data = bytearray([cmd, block % 256]) + bytearray(key)
        return await self.chipset.in_data_exchange(
            self.tg, data + bytearray(self.identifier[:4]))


class TagCommandError(Exception):
    """The base class for exceptions that are raised when a tag command
    has not returned the expected result.

    The :attr:`errno` attribute holds a reason code for why the
    command has failed. The codes and their messages are defined by
    the exception classes derived from :exc:`TagCommandError` in the
    tag type modules. Chip and communication failures are not tag
    command errors, they raise :exc:`aiopn532.clf.Error`.

    """
    errno_str = {}

    def __init__(self, errno):
        default = "tag command error {errno} (0x{errno:x})".format(errno=errno)
        super(TagCommandError, self).__init__(
            self.errno_str.get(errno, default))
        self._errno = errno

    @property
    def errno(self):
        """Holds the error reason code."""
        return self._errno

    def __int__(self):
        return self._errno


class TlvNotFound(TagCommandError):
    """Raised when the tag memory holds no TLV of the requested type."""
    errno_str = {1: "no matching tlv found in tag memory"}

    def __init__(self, tlv_type=None):
        super(TlvNotFound, self).__init__(1)
        self.tlv_type = tlv_type


def activate(chipset, target):
    """Return a tag object for the passive type A *target* that
    *chipset* has found. Only Type 2 Tags are supported, the PN532
    reports them with a SAK of 0x00 for NTAG/Ultralight, other SAK
    values are still served as Type 2 Tag for raw page access.

    """
    import aiopn532.tag.tt2
    if target.sel_res and target.sel_res[0] & 0x60 != 0x00:
        log.debug("sak 0x%02x is not a type 2 tag, use page access",
                  target.sel_res[0])
    return aiopn532.tag.tt2.Type2Tag(chipset, target)
