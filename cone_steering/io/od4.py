"""
OD4 Session - Receives OpenDLV messages over UDP multicast.

Packets carry a libcluon envelope: two magic bytes (0x0D 0xA4), a 24-bit
little-endian payload length, then the envelope fields in protobuf wire
format. Signed integers are zigzag encoded.
"""

from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional, Tuple
import logging
import socket
import struct
import threading

from cone_steering.core.reference import GroundSteeringRequest
from cone_steering.errors import ConfigurationError

logger = logging.getLogger(__name__)

OD4_PORT = 12175
MULTICAST_PREFIX = '225.0.0.'
PACKET_MAGIC = b'\x0d\xa4'
PACKET_HEADER_SIZE = 5
MAX_PACKET_SIZE = 65535

# Protobuf wire types
WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_LENGTH_DELIMITED = 2
WIRE_FIXED32 = 5


def read_varint(data: bytes, pos: int) -> Tuple[int, int]:
    """Read an unsigned varint. Returns (value, next position)."""
    result = 0
    shift = 0
    while True:
        if pos >= len(data):
            raise ValueError("Truncated varint")
        byte = data[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7
        if shift > 63:
            raise ValueError("Varint too long")


def zigzag_decode(value: int) -> int:
    return (value >> 1) ^ -(value & 1)


def iter_fields(data: bytes) -> Iterator[Tuple[int, int, object]]:
    """
    Iterate over protobuf wire fields.

    Yields:
        (field number, wire type, value) where value is an int for varints,
        bytes otherwise
    """
    pos = 0
    while pos < len(data):
        key, pos = read_varint(data, pos)
        field_number, wire_type = key >> 3, key & 0x07

        if wire_type == WIRE_VARINT:
            value, pos = read_varint(data, pos)
        elif wire_type == WIRE_FIXED64:
            value, pos = data[pos:pos + 8], pos + 8
        elif wire_type == WIRE_LENGTH_DELIMITED:
            length, pos = read_varint(data, pos)
            value, pos = data[pos:pos + length], pos + length
        elif wire_type == WIRE_FIXED32:
            value, pos = data[pos:pos + 4], pos + 4
        else:
            raise ValueError(f"Unsupported wire type {wire_type}")

        if pos > len(data):
            raise ValueError("Truncated field")

        yield field_number, wire_type, value


@dataclass
class TimeStamp:
    seconds: int = 0
    microseconds: int = 0

    def to_microseconds(self) -> int:
        return self.seconds * 1_000_000 + self.microseconds

    @classmethod
    def from_bytes(cls, data: bytes) -> "TimeStamp":
        stamp = cls()
        for number, wire_type, value in iter_fields(data):
            if number == 1 and wire_type == WIRE_VARINT:
                stamp.seconds = zigzag_decode(value)
            elif number == 2 and wire_type == WIRE_VARINT:
                stamp.microseconds = zigzag_decode(value)
        return stamp


@dataclass
class Envelope:
    """Container for one message on the OD4 bus."""
    data_type: int = 0
    serialized_data: bytes = b''
    sent: TimeStamp = field(default_factory=TimeStamp)
    received: TimeStamp = field(default_factory=TimeStamp)
    sample_time_stamp: TimeStamp = field(default_factory=TimeStamp)
    sender_stamp: int = 0

    @classmethod
    def from_bytes(cls, data: bytes) -> "Envelope":
        envelope = cls()
        for number, wire_type, value in iter_fields(data):
            if number == 1 and wire_type == WIRE_VARINT:
                envelope.data_type = zigzag_decode(value)
            elif number == 2 and wire_type == WIRE_LENGTH_DELIMITED:
                envelope.serialized_data = bytes(value)
            elif number == 3 and wire_type == WIRE_LENGTH_DELIMITED:
                envelope.sent = TimeStamp.from_bytes(value)
            elif number == 4 and wire_type == WIRE_LENGTH_DELIMITED:
                envelope.received = TimeStamp.from_bytes(value)
            elif number == 5 and wire_type == WIRE_LENGTH_DELIMITED:
                envelope.sample_time_stamp = TimeStamp.from_bytes(value)
            elif number == 6 and wire_type == WIRE_VARINT:
                envelope.sender_stamp = value
        return envelope


def decode_packet(packet: bytes) -> Envelope:
    """
    Decode one UDP packet into an envelope.

    Raises:
        ValueError: If the packet is malformed
    """
    if len(packet) < PACKET_HEADER_SIZE or packet[:2] != PACKET_MAGIC:
        raise ValueError("Not an OD4 packet")

    length = packet[2] | (packet[3] << 8) | (packet[4] << 16)
    payload = packet[PACKET_HEADER_SIZE:PACKET_HEADER_SIZE + length]
    if len(payload) != length:
        raise ValueError(f"Truncated packet: expected {length} bytes, got {len(payload)}")

    return Envelope.from_bytes(payload)


def decode_ground_steering_request(data: bytes) -> GroundSteeringRequest:
    message = GroundSteeringRequest()
    for number, wire_type, value in iter_fields(data):
        if number == 1 and wire_type == WIRE_FIXED32:
            message.ground_steering = struct.unpack('<f', value)[0]
    return message


# Message id -> payload decoder
MESSAGE_DECODERS: Dict[int, Callable[[bytes], object]] = {
    GroundSteeringRequest.ID: decode_ground_steering_request,
}


class OD4Session:
    """
    Multicast listener for one OD4 conference id.

    Registered triggers are invoked on the session's receiver thread with the
    decoded message.
    """

    def __init__(
        self,
        cid: int,
        interface: str = '0.0.0.0',
        autostart: bool = True,
    ):
        """
        Initialize session.

        Args:
            cid: Conference id (1-254), selects multicast group 225.0.0.<cid>
            interface: Local interface address for the multicast membership
            autostart: Open the socket and start the receiver thread now
        """
        if not 1 <= int(cid) <= 254:
            raise ConfigurationError(f"cid must be between 1 and 254, got {cid}")

        self.cid = int(cid)
        self.group = f"{MULTICAST_PREFIX}{self.cid}"
        self.interface = interface

        self._triggers: Dict[int, List[Callable]] = {}
        self._triggers_lock = threading.Lock()
        self._running = threading.Event()
        self._socket: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None

        if autostart:
            self.start()

    def data_trigger(self, message_id: int, callback: Callable) -> None:
        """Register a callback for one message type."""
        if message_id not in MESSAGE_DECODERS:
            raise ConfigurationError(f"No decoder for message id {message_id}")
        with self._triggers_lock:
            self._triggers.setdefault(message_id, []).append(callback)

    def dispatch(self, envelope: Envelope) -> None:
        """Decode an envelope and invoke its triggers."""
        with self._triggers_lock:
            callbacks = list(self._triggers.get(envelope.data_type, ()))
        if not callbacks:
            return

        message = MESSAGE_DECODERS[envelope.data_type](envelope.serialized_data)
        for callback in callbacks:
            callback(message)

    def dispatch_packet(self, packet: bytes) -> None:
        self.dispatch(decode_packet(packet))

    def start(self) -> None:
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM, socket.IPPROTO_UDP)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(('', OD4_PORT))
        membership = struct.pack('4s4s', socket.inet_aton(self.group), socket.inet_aton(self.interface))
        sock.setsockopt(socket.IPPROTO_IP, socket.IP_ADD_MEMBERSHIP, membership)
        sock.settimeout(0.1)

        self._socket = sock
        self._running.set()
        self._thread = threading.Thread(target=self._receive_loop, name=f"od4-{self.cid}", daemon=True)
        self._thread.start()
        logger.info("OD4 session joined %s:%d", self.group, OD4_PORT)

    def is_running(self) -> bool:
        return self._running.is_set()

    def stop(self) -> None:
        self._running.clear()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=1.0)
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def _receive_loop(self) -> None:
        while self._running.is_set():
            try:
                packet = self._socket.recv(MAX_PACKET_SIZE)
            except socket.timeout:
                continue
            except OSError:
                break

            try:
                self.dispatch_packet(packet)
            except (ValueError, struct.error) as e:
                logger.debug("Dropping malformed packet: %s", e)
