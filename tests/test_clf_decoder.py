# -*- coding: latin-1 -*-
import aiopn532.clf
from aiopn532.clf.frame import AckFrame, NackFrame, ErrorFrame, DataFrame
from aiopn532.clf.decoder import StreamDecoder

import pytest

from base_pn532 import HEX, CMD, RSP, ACK, NAK, ERR

import logging
logging.basicConfig(level=logging.WARN)
logging_level = logging.getLogger().getEffectiveLevel()
logging.getLogger("aiopn532.clf.decoder").setLevel(logging_level)


@pytest.fixture()
def decoder():
    return StreamDecoder()


def frames(events):
    return [e for e in events if not isinstance(e, Exception)]


def errors(events):
    return [e for e in events if isinstance(e, Exception)]


class TestStreamDecoder(object):
    def test_single_frames(self, decoder):
        assert decoder.feed(ACK()) == [AckFrame()]
        assert decoder.feed(NAK()) == [NackFrame()]
        assert decoder.feed(ERR()) == [ErrorFrame()]
        assert decoder.feed(RSP('03 32010607')) == \
            [DataFrame(0xD5, HEX('03 32010607'))]
        assert decoder.feed(CMD('02')) == [DataFrame(0xD4, HEX('02'))]

    def test_nothing_for_empty_chunk(self, decoder):
        assert decoder.feed(b'') == []
        assert decoder.in_frame is False

    def test_several_frames_in_one_chunk(self, decoder):
        events = decoder.feed(ACK() + RSP('15') + ACK() + RSP('33'))
        assert events == [AckFrame(), DataFrame(0xD5, HEX('15')),
                          AckFrame(), DataFrame(0xD5, HEX('33'))]

    def test_one_octet_at_a_time(self, decoder):
        stream = ACK() + RSP('4b 01 01 0004 08 04 deadbeef')
        events = []
        for octet in stream:
            events.extend(decoder.feed(bytearray([octet])))
        assert events == decoder.feed(stream)
        assert events == [AckFrame(),
                          DataFrame(0xD5, HEX('4b 01 01 0004 08 04 deadbeef'))]

    def test_frame_split_across_chunks(self, decoder):
        octets = RSP('41 00 0102030405060708090a0b0c0d0e0f10')
        assert decoder.feed(octets[:9]) == []
        assert decoder.in_frame is True
        assert decoder.feed(octets[9:]) == \
            [DataFrame(0xD5, HEX('41 00 0102030405060708090a0b0c0d0e0f10'))]
        assert decoder.in_frame is False

    def test_noise_before_frame_is_discarded(self, decoder):
        events = decoder.feed(HEX('12 34 56 ff') + RSP('15'))
        assert events == [DataFrame(0xD5, HEX('15'))]

    def test_noise_with_start_code_does_not_swallow_frame(self, decoder):
        events = decoder.feed(HEX('12 00 ff 34') + RSP('15'))
        assert frames(events) == [DataFrame(0xD5, HEX('15'))]
        assert all(isinstance(e, aiopn532.clf.ChecksumError)
                   for e in errors(events))

    def test_data_checksum_error_then_valid_frame(self, decoder):
        corrupt = RSP('03 32010607')
        corrupt[-2] ^= 0x01
        events = decoder.feed(corrupt + RSP('15'))
        assert len(events) == 2
        assert isinstance(events[0], aiopn532.clf.ChecksumError)
        assert events[1] == DataFrame(0xD5, HEX('15'))

    def test_length_checksum_error(self, decoder):
        events = decoder.feed(HEX('0000ff 02fd d402 2a 00'))
        assert len(errors(events)) == 1
        assert isinstance(events[0], aiopn532.clf.ChecksumError)
        assert frames(events) == []

    def test_missing_postamble(self, decoder):
        events = decoder.feed(HEX('0000ff 02fe d502 29 55') + ACK())
        assert type(events[0]) is aiopn532.clf.FrameDecodeError
        assert events[1:] == [AckFrame()]

    def test_missing_ack_postamble(self, decoder):
        events = decoder.feed(HEX('0000ff00ff 55') + RSP('15'))
        assert type(events[0]) is aiopn532.clf.FrameDecodeError
        assert events[1:] == [DataFrame(0xD5, HEX('15'))]

    def test_unknown_frame_identifier(self, decoder):
        events = decoder.feed(HEX('0000ff 02fe e002 1e 00'))
        assert len(events) == 1
        assert type(events[0]) is aiopn532.clf.FrameDecodeError

    def test_reset_drops_partial_frame(self, decoder):
        assert decoder.feed(RSP('03 32010607')[:8]) == []
        decoder.reset()
        assert decoder.in_frame is False
        assert decoder.feed(ACK()) == [AckFrame()]

    def test_false_length_in_noise_does_not_swallow_frame(self, decoder):
        events = decoder.feed(HEX('0000ff 01ff') + RSP('15'))
        assert frames(events) == [DataFrame(0xD5, HEX('15'))]
        assert len(errors(events)) == 1

    @pytest.mark.parametrize("noise", ['00ff', '00ff01ff', '00ffff'])
    def test_start_code_without_preamble_is_noise(self, decoder, noise):
        assert decoder.feed(HEX(noise) + RSP('15')) == \
            [DataFrame(0xD5, HEX('15'))]

    def test_false_nack_header_before_ack(self, decoder):
        assert decoder.feed(HEX('00ffff') + ACK()) == [AckFrame()]

    def test_frame_hidden_in_broken_candidate(self, decoder):
        # the candidate length covers the start of the ACK frame
        events = decoder.feed(HEX('0000ff 04fc d5') + ACK())
        assert frames(events) == [AckFrame()]
        assert len(errors(events)) == 1

    def test_broken_candidate_across_chunks(self, decoder):
        events = decoder.feed(HEX('0000ff 04fc d5 00'))
        assert events == [] and decoder.in_frame is True
        events = decoder.feed(HEX('00ff00ff00'))
        assert frames(events) == [AckFrame()]
        assert decoder.in_frame is False

    def test_extra_preamble_octets_between_frames(self, decoder):
        events = decoder.feed(HEX('0000ff 02fe d502 29 00 00') + ERR())
        assert events == [DataFrame(0xD5, HEX('02')), ErrorFrame()]
