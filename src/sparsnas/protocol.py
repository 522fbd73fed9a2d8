"""Packet encoding and decoding for the IKEA Sparsnas radio protocol.

Each transmission is a fixed 20-byte packet:
LEN, ADDR, CNT, STATUS[2], SERIAL[4], SEQ[2], TBP[2], PULSES[4], BATT,
CRC_HI, CRC_LO.

Bytes 3..17 are XOR-obfuscated with a 5-byte key derived from the
device serial number.  All multi-byte fields are big-endian.

Example:
    >>> from sparsnas.protocol import crc16_cms, derive_key, deobfuscate
    >>> raw = bytes.fromhex("11492407 0ea27617 0ecf8691 6747cfa2 77d36e2d")
    >>> hex(crc16_cms(raw[:18]))
    '0x6e2d'
    >>> deobfuscate(raw, derive_key(400565321))[5:9].hex()
    '0008a049'
"""

import struct

# -- Protocol constants ------------------------------------------------------

PACKET_LEN = 20
PAYLOAD_LEN = 18
LENGTH_FIELD = 17

# Obfuscated region is STATUS through BATT.
OBFUSCATED_START = 3
OBFUSCATED_END = PAYLOAD_LEN

KEY_LEN = 5
KEY_FIRST = 0x47
KEY_OFFSET = 0x8AEF9335

# Packets carry only the last six decimal digits of the label serial.
SERIAL_MODULUS = 1_000_000

SEQ_COUNTER_MASK = 0x7F
SEQ_MODULUS = 1 << 16
PULSE_MODULUS = 1 << 32

# STATUS, SERIAL, SEQ, TBP, PULSES, BATT
_FIELDS = struct.Struct(">HIHHIB")


class DecodeError(ValueError):
    """Base class for packets that cannot be turned into a reading."""


class TooShort(DecodeError):
    """Buffer is shorter than the protocol requires."""


class ChecksumMismatch(DecodeError):
    """CRC over the packet does not match the transmitted CRC."""


class BadLength(DecodeError):
    """LEN byte does not describe a Sparsnas packet."""


class SenderMismatch(DecodeError):
    """Packet comes from a different transmitter."""


class SequenceMismatch(DecodeError):
    """Clear-text packet counter disagrees with the decoded sequence."""


class InvalidCalibration(ValueError):
    """Pulses-per-kWh constant is zero or negative."""


def require_length(data: bytes, minimum: int) -> None:
    """Raise TooShort unless *data* holds at least *minimum* bytes."""
    if len(data) < minimum:
        raise TooShort(
            "packet too short: {} bytes, minimum is {}".format(
                len(data), minimum
            )
        )


# -- CRC-16/CMS --------------------------------------------------------------


def crc16_cms(data: bytes) -> int:
    """Compute the CRC-16 used by the Sparsnas transmitter.

    Polynomial 0x8005, initial value 0xFFFF, MSB first, no reflection
    and no final XOR (CRC-16/CMS, the CC1101 hardware CRC).

    Example:
        >>> hex(crc16_cms(b"123456789"))
        '0xaee7'
    """
    crc = 0xFFFF
    for byte in data:
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x8005) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return crc


def check_crc(data: bytes) -> bool:
    """Return True if the CRC at bytes 18..19 matches bytes 0..17.

    Raises:
        TooShort: If *data* holds fewer than 20 bytes.
    """
    require_length(data, PACKET_LEN)
    received = struct.unpack_from(">H", data, PAYLOAD_LEN)[0]
    return crc16_cms(data[:PAYLOAD_LEN]) == received


# -- Keystream ---------------------------------------------------------------


def key_seed(serial: int) -> int:
    """Return the 32-bit value the key bytes are taken from."""
    return (serial + KEY_OFFSET) & 0xFFFFFFFF


def derive_key(serial: int) -> bytes:
    """Derive the 5-byte obfuscation key for a label serial number.

    Example:
        >>> derive_key(400565321).hex(' ')
        '47 cf a2 7e b7'
    """
    x = struct.pack("<I", key_seed(serial))
    return bytes([KEY_FIRST, x[2], x[3], x[0], x[1]])


def keystream_byte(serial: int, index: int) -> int:
    """Return the keystream byte at *index* of the obfuscated region."""
    return derive_key(serial)[index % KEY_LEN]


def keystream(serial: int, length: int, start: int = 0) -> bytes:
    """Return *length* keystream bytes beginning at position *start*."""
    key = derive_key(serial)
    return bytes(key[i % KEY_LEN] for i in range(start, start + length))


def deobfuscate(data: bytes, key: bytes) -> bytes:
    """XOR the obfuscated region of *data* with *key*.

    Returns an 18-byte buffer: the clear header bytes copied through,
    followed by the 15 de-obfuscated bytes.  The operation is its own
    inverse, so it also obfuscates a plaintext buffer.

    Raises:
        TooShort: If *data* holds fewer than 18 bytes.
    """
    require_length(data, PAYLOAD_LEN)
    out = bytearray(data[:PAYLOAD_LEN])
    for i in range(OBFUSCATED_START, OBFUSCATED_END):
        out[i] ^= key[(i - OBFUSCATED_START) % KEY_LEN]
    return bytes(out)


obfuscate = deobfuscate


# -- Field extraction --------------------------------------------------------


def extract_fields(plain: bytes) -> dict:
    """Read the reading fields from a de-obfuscated 18-byte buffer.

    Validates the LEN byte only; sender and counter checks belong to
    the caller.  The status word is returned untouched, including bits
    whose meaning is unknown.

    Returns:
        dict: ``length``, ``address``, ``counter``, ``status``,
        ``serial``, ``packet_seq``, ``time_between_pulses``,
        ``pulse_count`` and ``battery_percentage``.

    Raises:
        TooShort: If *plain* holds fewer than 18 bytes.
        BadLength: If the LEN byte is not 17.
    """
    require_length(plain, PAYLOAD_LEN)

    if plain[0] != LENGTH_FIELD:
        raise BadLength(
            "bad LEN byte: expected {}, got {}".format(LENGTH_FIELD, plain[0])
        )

    status, serial, seq, tbp, pulses, battery = _FIELDS.unpack_from(
        plain, OBFUSCATED_START
    )

    return {
        "length": plain[0],
        "address": plain[1],
        "counter": plain[2],
        "status": status,
        "serial": serial,
        "packet_seq": seq,
        "time_between_pulses": tbp,
        "pulse_count": pulses,
        "battery_percentage": battery,
    }


# -- Encoding ----------------------------------------------------------------


def encode_packet(
    serial: int,
    packet_seq: int,
    time_between_pulses: int,
    pulse_count: int,
    battery_percentage: int,
    status: int = 0,
) -> bytes:
    """Build a complete 20-byte packet as the transmitter would send it.

    Counters wrap at their field width.  Used for test fixtures and
    the simulator tool.

    Raises:
        ValueError: If *battery_percentage* does not fit in one byte or
            *status* does not fit in two.
    """
    if not (0 <= battery_percentage <= 0xFF):
        raise ValueError(
            "battery_percentage must be 0-255, got {}".format(
                battery_percentage
            )
        )
    if not (0 <= status <= 0xFFFF):
        raise ValueError("status must be 0-65535, got {}".format(status))

    embedded = serial % SERIAL_MODULUS
    seq = packet_seq % SEQ_MODULUS
    header = bytes([LENGTH_FIELD, embedded & 0xFF, seq & SEQ_COUNTER_MASK])
    body = _FIELDS.pack(
        status,
        embedded,
        seq,
        time_between_pulses & 0xFFFF,
        pulse_count % PULSE_MODULUS,
        battery_percentage,
    )
    payload = obfuscate(header + body, derive_key(serial))
    return payload + struct.pack(">H", crc16_cms(payload))
