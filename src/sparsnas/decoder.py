"""Decoder bound to a single Sparsnas transmitter.

See https://github.com/kodarn/Sparsnas for the reverse-engineered
packet format.

Example:
    >>> from sparsnas.decoder import SparsnasDecoder
    >>> d = SparsnasDecoder(400547040)
    >>> r = d.decode(bytes.fromhex(
    ...     "11e02b070ea21d28a7800912be478a205b146957"))
    >>> r.pulse_count, r.battery_percentage
    (4555342, 100)
    >>> d.power(r, 1000)
    1845
"""

from sparsnas.protocol import (
    ChecksumMismatch,
    PACKET_LEN,
    PAYLOAD_LEN,
    SEQ_COUNTER_MASK,
    SERIAL_MODULUS,
    SenderMismatch,
    SequenceMismatch,
    check_crc,
    deobfuscate,
    derive_key,
    encode_packet,
    extract_fields,
    require_length,
)
from sparsnas.reading import Reading


class SparsnasDecoder:
    """Decode packets from the transmitter with label serial *serial*.

    The serial is the 9-digit number on the label behind the
    batteries (nnn-nnn-nnn).  The key is derived once here; it is a
    pure function of the serial, so ``decode`` keeps no state between
    calls and one instance can be shared between threads.

    Args:
        serial: Label serial number (int).
    """

    def __init__(self, serial: int):
        """Bind the decoder to *serial*."""
        self._serial = serial
        self._key = derive_key(serial)

    @property
    def serial(self) -> int:
        """Label serial number this decoder was built for."""
        return self._serial

    def decode(self, data: bytes) -> Reading:
        """Decode a 20-byte packet that ends with its CRC.

        Bytes past the first 20 are ignored.

        Raises:
            TooShort: Fewer than 20 bytes.
            ChecksumMismatch: CRC does not match.
            BadLength: LEN byte is not 17.
            SenderMismatch: Packet is from another transmitter.
            SequenceMismatch: Packet counter disagrees with the sequence.
        """
        if not check_crc(data):
            raise ChecksumMismatch(
                "CRC mismatch: received {}".format(
                    bytes(data[PAYLOAD_LEN:PACKET_LEN]).hex()
                )
            )
        return self._decode(data, crc_valid=True)

    def decode_nocrc(self, data: bytes) -> Reading:
        """Decode an 18-byte packet whose CRC was stripped or checked elsewhere.

        Raises the same errors as ``decode`` except ``ChecksumMismatch``.
        """
        return self._decode(data, crc_valid=False)

    def _decode(self, data: bytes, crc_valid: bool) -> Reading:
        require_length(data, PAYLOAD_LEN)
        fields = extract_fields(deobfuscate(data, self._key))

        expected = self._serial % SERIAL_MODULUS
        if fields["serial"] != expected:
            raise SenderMismatch(
                "serial mismatch: expected {}, got {}".format(
                    expected, fields["serial"]
                )
            )

        if fields["packet_seq"] & SEQ_COUNTER_MASK != fields["counter"]:
            raise SequenceMismatch(
                "packet counter 0x{:02X} does not match sequence {}".format(
                    fields["counter"], fields["packet_seq"]
                )
            )

        return Reading(
            serial=fields["serial"],
            address=fields["address"],
            packet_seq=fields["packet_seq"],
            time_between_pulses=fields["time_between_pulses"],
            pulse_count=fields["pulse_count"],
            battery_percentage=fields["battery_percentage"],
            status=fields["status"],
            crc_valid=crc_valid,
        )

    def encode(
        self,
        packet_seq: int,
        time_between_pulses: int,
        pulse_count: int,
        battery_percentage: int,
        status: int = 0,
    ) -> bytes:
        """Build the packet this transmitter would send for these values."""
        return encode_packet(
            self._serial, packet_seq, time_between_pulses,
            pulse_count, battery_percentage, status,
        )

    @staticmethod
    def power(reading: Reading, pulses_per_kwh: int) -> int:
        """Return current power in watts for *reading*.

        *pulses_per_kwh* is the meter's calibration (usually 1000 or
        10000, printed on the meter).

        Raises:
            InvalidCalibration: If *pulses_per_kwh* is not positive.
        """
        return reading.power(pulses_per_kwh)
