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
import aiopn532
import aiopn532.clf
import aiopn532.tag
from aiopn532.clf import transport

import os
import sys
import asyncio
import argparse
from binascii import hexlify

import ndef

import logging
log = logging.getLogger('main')

LOG_LEVELS = (logging.WARNING, logging.INFO, logging.DEBUG, logging.DEBUG-1)


def add_device_options(argument_parser):
    group = argument_parser.add_argument_group(title="Device Options")
    group.add_argument(
        "--device", metavar="PATH", default="tty:USB0",
        help="use PN532 at: "
        "'usb[:bus[:dev]]' (with bus and device number), "
        "'tty:port' (with /dev/tty<port>), "
        "'com:port' (with COM<port>) (default: %(default)s)")
    group.add_argument(
        "--poll-interval", type=float, default=1.0, metavar="SEC",
        help="seconds between scans when polling (default: %(default)s)")


def add_debug_options(argument_parser):
    group = argument_parser.add_argument_group(title="Debug Options")
    group.add_argument(
        "-v", "--verbose", action="count", default=0,
        help="show more information, repeat for frame dumps")
    group.add_argument(
        "-d", metavar="MODULE", dest="debug", action="append",
        default=list(),
        help="enable debug log for MODULE (main, aiopn532.clf, ...)")


def make_parser():
    parser = argparse.ArgumentParser(
        prog="aiopn532", description="Talk to tags through a PN532.")
    add_device_options(parser)
    add_debug_options(parser)

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")
    subparsers.required = True
    subparsers.add_parser("info", help="show the chip firmware version")
    subparsers.add_parser("scan", help="scan once for a tag")
    subparsers.add_parser("poll", help="scan continuously until interrupted")
    subparsers.add_parser("read", help="print the tag's NDEF records")
    write = subparsers.add_parser("write", help="write an NDEF record")
    group = write.add_mutually_exclusive_group(required=True)
    group.add_argument("--text", help="write a text record")
    group.add_argument("--uri", help="write a URI record")
    return parser


def setup_logging(options):
    default = os.environ.get("PN532_LOGGING", "WARNING").upper()
    level = logging.getLevelName(default)
    if not isinstance(level, int):
        level = logging.WARNING
    if options.verbose:
        level = LOG_LEVELS[min(options.verbose, len(LOG_LEVELS) - 1)]

    logging.basicConfig(level=level, format='[%(name)s] %(message)s')
    logging.getLogger('aiopn532').setLevel(logging.NOTSET)
    for module in options.debug:
        log.info("enable debug output for '{0}'".format(module))
        logging.getLogger(module).setLevel(1)


async def scan_for_tag(clf):
    tag = await clf.scan()
    if tag is None:
        print("no tag found")
    return tag


async def run(options):
    device = transport.connect(options.device)
    if device is None:
        log.error("no PN532 found on '{0}'".format(options.device))
        return 1

    clf = aiopn532.ContactlessFrontend(
        device, poll_interval=options.poll_interval)
    async with clf:
        if options.command == "info":
            version = await clf.get_firmware_version()
            print("PN5{0:02x} v{1}.{2} (support 0x{3:02x})".format(*version))

        elif options.command == "scan":
            tag = await scan_for_tag(clf)
            if tag is not None:
                print(tag)

        elif options.command == "poll":
            done = asyncio.Event()

            def show(tag):
                print(tag if tag is not None else "no tag")

            clf.on("tag", show)
            try:
                await done.wait()
            finally:
                clf.off("tag", show)

        elif options.command == "read":
            tag = await scan_for_tag(clf)
            if tag is None:
                return 1
            try:
                records = await tag.read_ndef_records()
            except aiopn532.tag.TlvNotFound:
                print("no ndef message on {0}".format(tag))
                return 1
            except ndef.DecodeError as error:
                octets = await tag.read_ndef_message()
                print("undecodable ndef message {0}: {1}".format(
                    hexlify(octets).decode(), error))
                return 1
            for record in records:
                print(record)

        elif options.command == "write":
            tag = await scan_for_tag(clf)
            if tag is None:
                return 1
            if options.text is not None:
                record = ndef.TextRecord(options.text)
            else:
                record = ndef.UriRecord(options.uri)
            await tag.write_ndef_records([record])
            print("wrote {0} to {1}".format(record, tag))
    return 0


def main(args=None):
    options = make_parser().parse_args(args)
    setup_logging(options)
    log.debug(options)
    try:
        return asyncio.run(run(options))
    except KeyboardInterrupt:
        return 0
    except (aiopn532.clf.Error, aiopn532.tag.TagCommandError) as error:
        log.error(str(error))
        return 1


if __name__ == '__main__':
    sys.exit(main())
