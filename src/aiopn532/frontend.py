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
"""The :class:`ContactlessFrontend` is the application facing part of
the package. It owns the :class:`~aiopn532.clf.pn532.Chipset` for a
transport, scans for tags, runs tag commands addressed by the logical
target number and continuously polls for tags on behalf of registered
observers.

"""
import aiopn532.clf
import aiopn532.tag
import aiopn532.tag.tt2
from aiopn532.clf.pn532 import Chipset

import asyncio
from collections import defaultdict

import logging
log = logging.getLogger(__name__)

BRTY_106A = 0x00
DEFAULT_KEY = b'\xFF\xFF\xFF\xFF\xFF\xFF'


class ContactlessFrontend(object):
    """Drive a PN532 attached through *transport*, an instance of one
    of the :mod:`aiopn532.clf.transport` classes. Tags are polled
    every *poll_interval* seconds while there are ``tag`` observers.
    The *ack_timeout* and *response_timeout* are handed to the
    :class:`~aiopn532.clf.pn532.Chipset`.

    ::

        import aiopn532
        from aiopn532.clf import transport

        async def main():
            clf = aiopn532.ContactlessFrontend(transport.connect('tty:USB0'))
            async with clf:
                tag = await clf.scan()
                if tag is not None:
                    print(tag.uid)

    """
    def __init__(self, transport, poll_interval=1.0, ack_timeout=0.1,
                 response_timeout=1.0):
        self.transport = transport
        self.poll_interval = poll_interval
        self.chipset = Chipset(transport, ack_timeout, response_timeout)
        self._observers = defaultdict(list)
        self._pollers = {}
        self._closing = False

    def __str__(self):
        return "PN532 on {0}".format(self.transport)

    async def __aenter__(self):
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_value, traceback):
        await self.close()

    async def open(self):
        """Initialize the transport and the chip. The chip is put into
        normal mode (no security module) and passive target activation
        is tried only once, so that :meth:`scan` returns when there is
        no tag. Observers of the ``ready`` event are notified when done
        and the poller starts if there are ``tag`` observers.

        """
        self._closing = False
        await self.chipset.open()
        try:
            await self.chipset.sam_configuration("normal")
            await self.chipset.set_max_retries(
                atr=0x01, psl=0x00, passive=0x01)
        except aiopn532.clf.Error:
            await self.chipset.close()
            raise
        log.info("%s is ready", self)
        await self._emit("ready")
        if self._observers.get("tag"):
            self._start_poller("tag")

    async def close(self):
        """Stop all pollers and close the chipset and transport."""
        self._closing = True
        pollers, self._pollers = list(self._pollers.values()), {}
        for task in pollers:
            task.cancel()
        for task in pollers:
            try:
                await task
            except asyncio.CancelledError:
                pass
        try:
            await self.chipset.close()
        except IOError as error:
            log.debug("ignore transport close error: %s", error)

    async def get_firmware_version(self):
        """Return the chip's firmware version response data, the IC
        type, version, revision and supported card types.

        """
        return await self.chipset.get_firmware_version()

    async def get_general_status(self):
        """Return the chip's general status response data."""
        return await self.chipset.get_general_status()

    async def scan(self):
        """Look for one passive type A target at 106 kbps and return a
        :class:`~aiopn532.tag.tt2.Type2Tag` if exactly one was found,
        otherwise None.

        """
        data = await self.chipset.in_list_passive_target(1, BRTY_106A)
        if not data or data[0] != 1:
            log.debug("found %d targets", data[0] if data else 0)
            return None

        if len(data) < 6 or len(data) < 6 + data[5]:
            log.debug("target data too short")
            self.chipset.chipset_error(None)

        uid = data[6:6+data[5]]
        target = aiopn532.clf.RemoteTarget(
            '106A', tg=data[1], sens_res=data[2:4], sel_res=data[4:5],
            sdd_res=uid)
        tag = aiopn532.tag.activate(self.chipset, target)
        log.debug("found %s", tag)
        return tag

    def _tag(self, tag_number, uid=None):
        target = aiopn532.clf.RemoteTarget(tg=tag_number, sdd_res=uid)
        return aiopn532.tag.tt2.Type2Tag(self.chipset, target)

    async def read_block(self, block, tag_number=1):
        """Read 16 bytes starting at page *block* from tag *tag_number*."""
        return await self._tag(tag_number).read(block)

    async def write_block(self, block, data, tag_number=1):
        """Write the 4 byte *data* to page *block* of tag *tag_number*."""
        return await self._tag(tag_number).write(block, data)

    async def read_ndef_message(self, tag_number=1):
        return await self._tag(tag_number).read_ndef_message()

    async def write_ndef_message(self, data, tag_number=1):
        return await self._tag(tag_number).write_ndef_message(data)

    async def authenticate_block(self, uid, block=4, key=DEFAULT_KEY,
                                 key_type='A', tag_number=1):
        """Authenticate *block* of the MIFARE Classic tag with the
        colon separated hex *uid*. The raw response data is returned.

        """
        uid = bytearray.fromhex(uid.replace(':', ''))
        return await self._tag(tag_number, uid).authenticate(
            block, key, key_type)

    def on(self, event, callback):
        """Register *callback* for *event*. The ``tag`` event runs the
        poller, a single task no matter how many callbacks are
        registered, that calls each callback with the tag found or
        None. The poller starts right away if the frontend is open,
        otherwise with :meth:`open`, so callbacks can be registered
        before the event loop runs. The ``ready`` event is sent by
        :meth:`open`. Callbacks may be plain functions or coroutine
        functions.

        """
        self._observers[event].append(callback)
        if event == "tag" and self.chipset.is_open:
            self._start_poller(event)

    def _start_poller(self, event):
        if event not in self._pollers:
            log.debug("start %s poller", event)
            self._pollers[event] = asyncio.ensure_future(
                self._poll_tags(event))

    def off(self, event, callback=None):
        """Remove *callback*, or all callbacks if None, from *event*. The
        poller stops when the last ``tag`` callback is removed.

        """
        observers = self._observers[event]
        if callback is None:
            del observers[:]
        elif callback in observers:
            observers.remove(callback)
        if not observers and event in self._pollers:
            log.debug("stop %s poller", event)
            self._pollers.pop(event).cancel()

    async def _emit(self, event, *args):
        for callback in list(self._observers.get(event, ())):
            try:
                result = callback(*args)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                log.exception("%s callback %r failed", event, callback)

    async def _poll_tags(self, event):
        while not self._closing and self._observers.get(event):
            try:
                tag = await self.scan()
            except aiopn532.clf.CommunicationError as error:
                log.warning("scan failed: %s", error)
            else:
                await self._emit(event, tag)
            await asyncio.sleep(self.poll_interval)
