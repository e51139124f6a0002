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
#
# Transport layer for host to chip communication.
#
import os
import re
import errno
import asyncio
from binascii import hexlify

try:
    import usb1 as libusb
except ImportError:  # pragma: no cover
    raise ImportError("missing usb1 module, try 'pip install libusb1'")

try:
    import serial
    import serial.tools.list_ports
except ImportError:  # pragma: no cover
    raise ImportError("missing serial module, try 'pip install pyserial'")

try:
    import termios
except ImportError:  # pragma: no cover
    assert os.name != 'posix'

import logging
log = logging.getLogger(__name__)

SERIAL_PATH = re.compile(r'^(tty|com)(?::([A-Za-z]*)(\d*))?$')
USB_PATH = re.compile(r'^usb((?::\w+){0,2})$')

# USB readers with a PN53x chip that speaks the normal frame syntax
# directly on the bulk endpoints.
usb_device_map = {
    (0x04cc, 0x2533): "pn533",   # NXP PN533 demo board
    (0x04e6, 0x5591): "pn533",   # SCM SCL3711
    (0x04e6, 0x5593): "pn533",   # SCM SCL3712
}


class Transport(object):
    """The interface that the command/response engine expects from a
    transport. :meth:`init` opens the device, :meth:`write` sends
    octets without waiting for an answer, :meth:`read` returns the next
    chunk of received octets (an empty chunk when nothing arrived for a
    while) and :meth:`close` releases the device. Device errors are
    raised as :exc:`IOError` with an appropriate errno.

    The :meth:`write` method is called from the event loop. It must
    return within its write timeout, a frame is at most 262 octets.

    """
    async def init(self):
        cname = self.__class__.__module__ + '.' + self.__class__.__name__
        raise NotImplementedError(cname + ".init")

    def write(self, frame):
        cname = self.__class__.__module__ + '.' + self.__class__.__name__
        raise NotImplementedError(cname + ".write")

    async def read(self):
        cname = self.__class__.__module__ + '.' + self.__class__.__name__
        raise NotImplementedError(cname + ".read")

    def close(self):
        pass

    async def _run(self, func, *args):
        # Run a blocking device call without stalling the event loop.
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, func, *args)


class TTY(Transport):
    # Bring the PN532 high speed uart out of power down. The 0x55
    # octets wake the chip and the long preamble gives it time to
    # settle before the first command frame arrives.
    WAKEUP = bytearray.fromhex('5555') + bytearray(14)

    @classmethod
    def find(cls, path):
        """Return ``(ports, glob)`` for a serial port *path*, or None if
        *path* is not one. The *glob* flag tells if *path* may match
        more than a single port. Serial port paths are:

        * ``tty`` - all ``/dev/tty(S|ACM|AMA|USB)<n>`` ports
        * ``tty:<name>`` - all ``/dev/tty<name><n>`` ports
        * ``tty:<name><n>`` - the port ``/dev/tty<name><n>``
        * ``com`` - all serial ports that pyserial lists
        * ``com:<n>`` or ``com:COM<n>`` - the port ``COM<n>``

        """
        match = SERIAL_PATH.match(path)
        if match is None:
            return None

        kind, name, number = match.groups('')

        if kind == "com":
            if name in ('', 'COM') and number:
                return ["COM" + number], False
            if not (name or number):
                ports = [p[0] for p in serial.tools.list_ports.comports()]
                log.debug("serial ports: %s", ' '.join(ports))
                return ports, True
            log.error("invalid port in 'com' path: %r", name + number)
            return None

        if not (name or number):
            nodes, glob = r'^tty(S|ACM|AMA|USB)\d+$', True
        elif not number:
            nodes, glob = r'^tty{0}\d+$'.format(name), True
        else:
            nodes, glob = r'^tty{0}{1}$'.format(name, number), False

        ttys = [fn for fn in os.listdir('/dev') if re.match(nodes, fn)]
        ttys.sort(key=lambda fn: (len(fn), fn))

        # A node is usable if it answers a terminal attribute query.
        # Access errors are raised only for a single designated port.
        ports = []
        for tty in ttys:
            try:
                with open('/dev/' + tty) as fd:
                    termios.tcgetattr(fd)
            except termios.error:
                continue
            except IOError as error:
                log.debug("%s: %s", tty, error)
                if not glob:
                    raise
                continue
            ports.append('/dev/' + tty)

        log.debug("serial ports: %s", ' '.join(ports))
        return ports, glob

    def __init__(self, port=None, baudrate=115200, write_timeout=0.1):
        self.tty = None
        self._port = port
        self._baudrate = baudrate
        self._write_timeout = write_timeout

    async def init(self):
        await self._run(self.open, self._port, self._baudrate)
        self.write(self.WAKEUP)

    def open(self, port, baudrate=115200):
        self.close()
        try:
            self.tty = serial.Serial(port, baudrate, timeout=0.05,
                                     write_timeout=self._write_timeout)
        except serial.SerialException as error:
            log.error("%s", error)
            raise IOError(errno.ENODEV, os.strerror(errno.ENODEV))

    @property
    def port(self):
        return self.tty.port if self.tty else ''

    @property
    def baudrate(self):
        return self.tty.baudrate if self.tty else 0

    async def read(self):
        return await self._run(self._read)

    def _read(self):
        if self.tty is None:
            raise IOError(errno.ENODEV, os.strerror(errno.ENODEV))
        try:
            data = self.tty.read(max(1, self.tty.in_waiting))
        except serial.SerialException as error:
            log.error("%s", error)
            raise IOError(errno.EIO, os.strerror(errno.EIO))
        if data:
            log.log(logging.DEBUG-1, "<<< %s", hexlify(data).decode())
        return bytes(data)

    def write(self, frame):
        if self.tty is None:
            return
        log.log(logging.DEBUG-1, ">>> %s", hexlify(frame).decode())
        try:
            self.tty.write(bytes(frame))
        except serial.SerialTimeoutException:
            log.error("serial write timeout after %s s", self._write_timeout)
            raise IOError(errno.ETIMEDOUT, os.strerror(errno.ETIMEDOUT))
        except serial.SerialException as error:
            log.error("%s", error)
            raise IOError(errno.EIO, os.strerror(errno.EIO))

    def close(self):
        if self.tty is not None:
            self.tty.reset_output_buffer()
            self.tty.close()
            self.tty = None


class USB(Transport):
    @classmethod
    def find(cls, path):
        """Return a list of ``(vid, pid, bus, dev)`` tuples for the USB
        devices that match *path*, or None if *path* is not a USB
        path. The *path* is ``usb``, ``usb:vid[:pid]`` with four digit
        hexadecimal ids, or ``usb:bus[:dev]`` with up to three digit
        decimal numbers.

        """
        match = USB_PATH.match(path)
        if match is None:
            return None

        fields = match.group(1).split(':')[1:]
        if all(re.match(r'^[0-9a-fA-F]{4}$', f) for f in fields):
            getters, base = ('getVendorID', 'getProductID'), 16
        elif all(re.match(r'^[0-9]{1,3}$', f) for f in fields):
            getters, base = ('getBusNumber', 'getDeviceAddress'), 10
        else:
            return None
        wanted = [(getter, int(f, base)) for getter, f in zip(getters, fields)]
        log.debug("search usb devices with %s", wanted)

        with libusb.USBContext() as context:
            return [(d.getVendorID(), d.getProductID(),
                     d.getBusNumber(), d.getDeviceAddress())
                    for d in context.getDeviceList(skip_on_error=True)
                    if all(getattr(d, getter)() == value
                           for getter, value in wanted)]

    def __init__(self, usb_bus, dev_adr, write_timeout=100):
        self.context = None
        self.usb_dev = None
        self.usb_out = None
        self.usb_inp = None
        self._usb_bus = usb_bus
        self._dev_adr = dev_adr
        self._write_timeout = write_timeout

    async def init(self):
        await self._run(self.open, self._usb_bus, self._dev_adr)

    def open(self, usb_bus, dev_adr):
        self.close()
        self.context = libusb.USBContext()

        for dev in self.context.getDeviceList(skip_on_error=True):
            if ((dev.getBusNumber() == usb_bus and
                 dev.getDeviceAddress() == dev_adr)):
                break
        else:
            log.error("no device {0} on bus {1}".format(dev_adr, usb_bus))
            raise IOError(errno.ENODEV, os.strerror(errno.ENODEV))

        try:
            first_setting = next(dev.iterSettings())
        except StopIteration:
            log.error("no usb configuration settings, please replug device")
            raise IOError(errno.ENODEV, os.strerror(errno.ENODEV))

        for endpoint in first_setting.iterEndpoints():
            ep_addr = endpoint.getAddress()
            ep_attr = endpoint.getAttributes()
            if ep_attr & libusb.TRANSFER_TYPE_MASK \
               == libusb.TRANSFER_TYPE_BULK:
                if ep_addr & libusb.ENDPOINT_DIR_MASK == libusb.ENDPOINT_IN:
                    self.usb_inp = self.usb_inp or endpoint
                if ep_addr & libusb.ENDPOINT_DIR_MASK == libusb.ENDPOINT_OUT:
                    self.usb_out = self.usb_out or endpoint

        if not (self.usb_inp and self.usb_out):
            log.error("no bulk endpoints for read and write")
            raise IOError(errno.ENODEV, os.strerror(errno.ENODEV))

        try:
            self.usb_dev = dev.open()
            self.usb_dev.claimInterface(0)
        except libusb.USBErrorAccess:
            raise IOError(errno.EACCES, os.strerror(errno.EACCES))
        except libusb.USBErrorBusy:
            raise IOError(errno.EBUSY, os.strerror(errno.EBUSY))
        except libusb.USBErrorNoDevice:
            raise IOError(errno.ENODEV, os.strerror(errno.ENODEV))

    def close(self):
        if self.usb_dev:
            self.usb_dev.close()
        if self.context:
            self.context.close()
        self.context = None
        self.usb_dev = None
        self.usb_out = None
        self.usb_inp = None

    async def read(self):
        return await self._run(self._read, 50)

    def _read(self, timeout):
        if self.usb_inp is None:
            raise IOError(errno.ENODEV, os.strerror(errno.ENODEV))
        try:
            ep_addr = self.usb_inp.getAddress()
            data = self.usb_dev.bulkRead(ep_addr, 300, timeout)
        except libusb.USBErrorTimeout:
            return b''
        except libusb.USBErrorNoDevice:
            raise IOError(errno.ENODEV, os.strerror(errno.ENODEV))
        except libusb.USBError as error:
            log.error("%r", error)
            raise IOError(errno.EIO, os.strerror(errno.EIO))

        log.log(logging.DEBUG-1, "<<< %s", hexlify(data).decode())
        return bytes(data)

    def write(self, frame):
        if self.usb_out is None:
            return
        log.log(logging.DEBUG-1, ">>> %s", hexlify(frame).decode())
        # A transfer that fills the last packet is ended with a zero
        # length packet. The timeout is in milliseconds, zero would
        # wait forever.
        packets = [bytes(frame)]
        if len(frame) % self.usb_out.getMaxPacketSize() == 0:
            packets.append(b'')
        ep_addr = self.usb_out.getAddress()
        try:
            for packet in packets:
                self.usb_dev.bulkWrite(ep_addr, packet, self._write_timeout)
        except libusb.USBErrorTimeout:
            log.error("usb write timeout after %d ms", self._write_timeout)
            raise IOError(errno.ETIMEDOUT, os.strerror(errno.ETIMEDOUT))
        except libusb.USBErrorNoDevice:
            raise IOError(errno.ENODEV, os.strerror(errno.ENODEV))
        except libusb.USBError as error:
            log.error("%r", error)
            raise IOError(errno.EIO, os.strerror(errno.EIO))


def connect(path):
    """Return an uninitialized transport for the device at *path*, or
    None if no device was found. A USB *path* selects the first device
    listed in :data:`usb_device_map` unless it names bus and device
    number, a serial port *path* selects the first port found.

    """
    assert isinstance(path, str) and len(path) > 0

    found = USB.find(path)
    if found is not None:
        exact = re.match(r'^usb:[0-9]{1,3}:[0-9]{1,3}$', path) is not None
        for vid, pid, bus, dev in found:
            if exact or (vid, pid) in usb_device_map:
                log.debug("using usb:{0:04x}:{1:04x} at usb:{2:03d}:{3:03d}"
                          .format(vid, pid, bus, dev))
                return USB(bus, dev)
        return None

    found = TTY.find(path)
    if found is not None:
        ports, glob = found
        if ports:
            log.debug("using serial port %s", ports[0])
            return TTY(ports[0])
    return None
