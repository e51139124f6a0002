# -*- coding: latin-1 -*-
import aiopn532.clf.transport

import asyncio


def HEX(s):
    return bytearray.fromhex(s)


def STD_FRAME(data):
    LEN = bytearray([len(data)])
    LCS = bytearray([256 - sum(LEN) & 255])
    DCS = bytearray([256 - sum(data) & 255])
    return HEX('0000ff') + LEN + LCS + data + DCS + HEX('00')


def CMD(hexstr):
    return STD_FRAME(HEX('D4' + hexstr))


def RSP(hexstr):
    return STD_FRAME(HEX('D5' + hexstr))


def ACK():
    return HEX('0000FF00FF00')


def NAK():
    return HEX('0000FFFF0000')


def ERR():
    return HEX('0000FF01FF7F8100')


def run(coro):
    return asyncio.run(coro)


class ScriptedTransport(aiopn532.clf.transport.Transport):
    """An in-memory transport. Each command frame written pops the next
    entry from :attr:`script`, a list of octet chunks (or exceptions to
    raise from :meth:`read`) that are then returned by :meth:`read` one
    at a time. ACK frames written by the host do not consume the script.

    """
    def __init__(self, *script):
        self.script = list(script)
        self.written = []
        self.closed = False
        self.queue = None

    async def init(self):
        self.queue = asyncio.Queue()

    def write(self, frame):
        self.written.append(bytearray(frame))
        if bytearray(frame) != ACK() and self.script:
            for chunk in self.script.pop(0):
                self.queue.put_nowait(chunk)

    def feed(self, *chunks):
        for chunk in chunks:
            self.queue.put_nowait(chunk)

    async def read(self):
        item = await self.queue.get()
        if isinstance(item, Exception):
            raise item
        return bytes(item)

    def close(self):
        self.closed = True


def OPEN_SCRIPT():
    # responses to SAMConfiguration and RFConfiguration
    return [[ACK(), RSP('15')], [ACK(), RSP('33')]]
