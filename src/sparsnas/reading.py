"""Decoded Sparsnas reading dataclass.

Example:
    >>> from sparsnas.reading import Reading
    >>> r = Reading(serial=547040, address=0xE0, packet_seq=20395,
    ...             time_between_pulses=1998, pulse_count=4555342,
    ...             battery_percentage=100, status=0x40C1, crc_valid=True)
    >>> r.power(1000)
    1845
"""

from dataclasses import dataclass

from sparsnas.protocol import InvalidCalibration, PULSE_MODULUS, SEQ_MODULUS

# 3600 s/h * 1000 W/kW * 1024 ticks/s
POWER_CONSTANT = 3_686_400_000


def _require_calibration(pulses_per_kwh: int) -> None:
    if pulses_per_kwh <= 0:
        raise InvalidCalibration(
            "pulses_per_kwh must be positive, got {}".format(pulses_per_kwh)
        )


@dataclass(frozen=True)
class Reading:
    """One decoded packet from a Sparsnas transmitter.

    ``time_between_pulses`` is in 1/1024 s units.  ``pulse_count`` is
    cumulative since the transmitter powered on and wraps at 2**32;
    compare successive readings with ``pulses_since`` rather than
    subtracting.  ``crc_valid`` is False when the reading came from a
    buffer whose CRC was not checked here.
    """

    serial: int
    address: int
    packet_seq: int
    time_between_pulses: int
    pulse_count: int
    battery_percentage: int
    status: int
    crc_valid: bool

    def power(self, pulses_per_kwh: int) -> int:
        """Return current power usage in watts.

        Returns 0 while no pulse interval has been measured.

        Raises:
            InvalidCalibration: If *pulses_per_kwh* is not positive.
        """
        _require_calibration(pulses_per_kwh)
        if self.time_between_pulses == 0:
            return 0
        return POWER_CONSTANT // (pulses_per_kwh * self.time_between_pulses)

    def energy_kwh(self, pulses_per_kwh: int) -> float:
        """Return the energy in kWh represented by ``pulse_count``."""
        _require_calibration(pulses_per_kwh)
        return self.pulse_count / pulses_per_kwh

    def pulses_since(self, previous: "Reading") -> int:
        """Pulses counted since *previous*, allowing for counter wrap."""
        return (self.pulse_count - previous.pulse_count) % PULSE_MODULUS

    def packets_since(self, previous: "Reading") -> int:
        """Sequence steps since *previous*; 1 means nothing was missed."""
        return (self.packet_seq - previous.packet_seq) % SEQ_MODULUS
