"""
Unit tests for the reference steering cell and the OD4 transport.
"""

import struct
import threading

import pytest
from unittest.mock import Mock

from cone_steering.core.reference import (
    GroundSteeringRequest,
    ReferenceSteeringCell,
    ReferenceValueListener,
)
from cone_steering.errors import ConfigurationError
from cone_steering.io.od4 import (
    PACKET_MAGIC,
    WIRE_FIXED32,
    WIRE_LENGTH_DELIMITED,
    WIRE_VARINT,
    Envelope,
    OD4Session,
    decode_ground_steering_request,
    decode_packet,
    read_varint,
    zigzag_decode,
)


def write_varint(value):
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if not value:
            out.append(byte)
            return bytes(out)
        out.append(byte | 0x80)


def zigzag_encode(value):
    return (value << 1) ^ (value >> 63)


def encode_packet(data_type, serialized_data, sender_stamp=0):
    """Build an OD4 packet the way a libcluon sender frames one message."""
    payload = write_varint((1 << 3) | WIRE_VARINT) + write_varint(zigzag_encode(data_type))
    payload += write_varint((2 << 3) | WIRE_LENGTH_DELIMITED) + write_varint(len(serialized_data))
    payload += serialized_data
    payload += write_varint((6 << 3) | WIRE_VARINT) + write_varint(sender_stamp)
    return PACKET_MAGIC + len(payload).to_bytes(3, 'little') + payload


def encode_ground_steering_request(message):
    return write_varint((1 << 3) | WIRE_FIXED32) + struct.pack('<f', message.ground_steering)


class TestReferenceSteeringCell:
    """Tests for ReferenceSteeringCell class."""

    def test_initial_value(self):
        assert ReferenceSteeringCell().get() == 0.0

    def test_set_get(self):
        cell = ReferenceSteeringCell()
        cell.set(0.12)

        assert cell.get() == 0.12

    def test_reader_is_read_only(self):
        """The reader sees updates but cannot write."""
        cell = ReferenceSteeringCell()
        reader = cell.reader()
        cell.set(-0.2)

        assert reader.get() == -0.2
        assert not hasattr(reader, 'set')

    def test_concurrent_writers(self):
        """Last write wins with a value that one writer actually wrote."""
        cell = ReferenceSteeringCell()
        values = [i / 1000 for i in range(8)]

        def writer(value):
            for _ in range(500):
                cell.set(value)

        threads = [threading.Thread(target=writer, args=(v,)) for v in values]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert cell.get() in values


class TestReferenceValueListener:
    """Tests for ReferenceValueListener class."""

    def test_stores_message(self):
        cell = ReferenceSteeringCell()
        listener = ReferenceValueListener(cell)

        listener(GroundSteeringRequest(ground_steering=0.07))

        assert cell.get() == pytest.approx(0.07)


class TestWireFormat:
    """Tests for varint and zigzag helpers."""

    @pytest.mark.parametrize("value", [0, 1, 127, 128, 2180, 300000])
    def test_varint(self, value):
        data = write_varint(value)

        assert read_varint(data, 0) == (value, len(data))

    def test_known_varint(self):
        assert write_varint(2180) == b'\x84\x11'

    @pytest.mark.parametrize("value,encoded", [(0, 0), (-1, 1), (1, 2), (1090, 2180)])
    def test_zigzag(self, value, encoded):
        assert zigzag_encode(value) == encoded
        assert zigzag_decode(encoded) == value

    def test_truncated_varint(self):
        with pytest.raises(ValueError):
            read_varint(b'\x80', 0)


class TestPacketDecoding:
    """Tests for OD4 packet decoding."""

    def test_hand_built_packet(self):
        """Decode a ground steering request built byte by byte."""
        message = b'\x0d' + struct.pack('<f', 0.5)
        payload = b'\x08\x84\x11' + b'\x12' + bytes([len(message)]) + message
        packet = b'\x0d\xa4' + bytes([len(payload), 0, 0]) + payload

        envelope = decode_packet(packet)

        assert envelope.data_type == 1090
        assert decode_ground_steering_request(envelope.serialized_data).ground_steering == 0.5

    def test_timestamps(self):
        """Nested timestamps are decoded."""
        stamp = b'\x08' + write_varint(zigzag_encode(10)) + b'\x10' + write_varint(zigzag_encode(250))
        payload = b'\x08\x84\x11' + b'\x2a' + bytes([len(stamp)]) + stamp

        envelope = Envelope.from_bytes(payload)

        assert envelope.sample_time_stamp.seconds == 10
        assert envelope.sample_time_stamp.microseconds == 250
        assert envelope.sample_time_stamp.to_microseconds() == 10_000_250

    def test_encode_roundtrip(self):
        packet = encode_packet(
            GroundSteeringRequest.ID,
            encode_ground_steering_request(GroundSteeringRequest(-0.25)),
            sender_stamp=3,
        )

        envelope = decode_packet(packet)

        assert envelope.data_type == GroundSteeringRequest.ID
        assert envelope.sender_stamp == 3
        assert decode_ground_steering_request(envelope.serialized_data).ground_steering == -0.25

    @pytest.mark.parametrize("packet", [b'', b'\x00\x00\x01\x00\x00\x08', b'\x0d\xa4\x09\x00\x00\x08'])
    def test_malformed(self, packet):
        with pytest.raises(ValueError):
            decode_packet(packet)


class TestOD4Session:
    """Tests for OD4Session dispatch without sockets."""

    @pytest.fixture
    def session(self):
        return OD4Session(111, autostart=False)

    def test_group(self, session):
        assert session.group == '225.0.0.111'
        assert not session.is_running()

    @pytest.mark.parametrize("cid", [0, 255, -1])
    def test_invalid_cid(self, cid):
        with pytest.raises(ConfigurationError):
            OD4Session(cid, autostart=False)

    def test_unknown_message_id(self, session):
        with pytest.raises(ConfigurationError):
            session.data_trigger(9999, Mock())

    def test_dispatch_to_listener(self, session):
        """A received packet updates the reference cell."""
        cell = ReferenceSteeringCell()
        session.data_trigger(GroundSteeringRequest.ID, ReferenceValueListener(cell))

        session.dispatch_packet(encode_packet(
            GroundSteeringRequest.ID,
            encode_ground_steering_request(GroundSteeringRequest(0.125)),
        ))

        assert cell.get() == 0.125

    def test_other_message_types_ignored(self, session):
        callback = Mock()
        session.data_trigger(GroundSteeringRequest.ID, callback)

        session.dispatch(Envelope(data_type=1045, serialized_data=b'\x0d\x00\x00\x00\x00'))

        callback.assert_not_called()

    def test_stop_without_start(self, session):
        session.stop()

        assert not session.is_running()
