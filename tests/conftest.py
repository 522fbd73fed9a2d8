"""Shared pytest fixtures for sparsnas tests."""

import struct

from sparsnas.protocol import PAYLOAD_LEN, crc16_cms, encode_packet

# Captures from real transmitters: (label serial, packet bytes).
KODARN_SERIAL = 400_565_321
KODARN_PACKET = bytes.fromhex(
    "11 49 24 07 0e a2 76 17 0e cf 86 91 67 47 cf a2 77 d3 6e 2d"
)

REAL_SERIAL = 400_547_040
REAL_PACKET = bytes.fromhex(
    "11 e0 2b 07 0e a2 1d 28 a7 80 09 12 be 47 8a 20 5b 14 69 57"
)


def make_packet(serial: int = REAL_SERIAL, seq: int = 100, tbp: int = 2048,
                pulses: int = 5000, battery: int = 90,
                status: int = 0x40C1) -> bytes:
    """Build a valid packet for testing."""
    return encode_packet(serial, seq, tbp, pulses, battery, status)


def with_crc(payload: bytes) -> bytes:
    """Replace the CRC so an edited packet passes the checksum."""
    payload = bytes(payload[:PAYLOAD_LEN])
    return payload + struct.pack(">H", crc16_cms(payload))


class FakeReceiver:
    """Test double for a receiver: returns canned packets, then b""."""

    def __init__(self, packets: list[bytes]):
        """Initialize with canned packets."""
        self._packets = list(packets)
        self.closed = False

    def recv(self, timeout_s: float) -> bytes:
        """Return the next canned packet, or empty bytes if exhausted."""
        if self._packets:
            return self._packets.pop(0)
        return b""

    def close(self) -> None:
        """Record that the receiver was closed."""
        self.closed = True
