"""Packet listener: receive, decode and log readings from one transmitter.

The radio bridge forwards every packet it hears, including packets
from neighbouring transmitters and corrupted ones.  Those are
expected; they are logged at DEBUG and dropped.

Example:
    >>> from sparsnas.listener import Listener
    >>> from sparsnas.decoder import SparsnasDecoder
    >>> from sparsnas.udp_receiver import UDPReceiver
    >>> listener = Listener(UDPReceiver(5555), SparsnasDecoder(400547040), 1000)
    >>> listener.receive(1.0)  # Wait up to 1 second
"""

import logging

from sparsnas.protocol import SEQ_MODULUS, DecodeError
from sparsnas.reading import Reading

log = logging.getLogger(__name__)

# A sequence step this large is a packet from behind the previous one,
# e.g. a copy delayed by the bridge, not a forward jump.
STALE_STEPS = SEQ_MODULUS // 2

# Consecutive stale packets accepted as a restarted transmitter.
RESYNC_AFTER = 3


class Listener:
    """Receives packets and turns them into readings.

    Remembers the previous reading to report pulses consumed between
    packets, missed packets, and counter resets.  Packets older than
    the previous one are dropped until ``RESYNC_AFTER`` arrive in a
    row, which is taken as a transmitter restart.

    Args:
        receiver: Object with ``recv(timeout_s)`` method.
        decoder: ``SparsnasDecoder`` bound to the monitored transmitter.
        pulses_per_kwh: Meter calibration used for power.
    """

    def __init__(self, receiver, decoder, pulses_per_kwh: int):
        """Initialize the listener."""
        self._receiver = receiver
        self._decoder = decoder
        self._pulses_per_kwh = pulses_per_kwh
        self._previous: Reading | None = None
        self._stale = 0

    @property
    def previous(self) -> Reading | None:
        """Most recent reading accepted, or None."""
        return self._previous

    def receive(self, timeout_s: float) -> Reading | None:
        """Receive and process one packet.

        Returns:
            Reading on success, None on timeout, decode error, or a
            repeated or stale packet.
        """
        raw = self._receiver.recv(timeout_s)
        if not raw:
            return None

        return self._process_packet(raw)

    def _process_packet(self, raw: bytes) -> Reading | None:
        """Decode packet, compare with the previous reading, log it."""
        try:
            reading = self._decoder.decode(raw)
        except DecodeError as exc:
            log.debug("dropped packet %s: %s", raw.hex(), exc)
            return None

        delta = None
        prev = self._previous
        if prev is not None:
            steps = reading.packets_since(prev)
            if steps == 0:
                log.debug("repeated packet seq=%d", reading.packet_seq)
                return None
            if steps >= STALE_STEPS:
                if not self._stale_run(reading, prev):
                    return None
            elif steps > 1:
                log.info("missed %d packet(s) before seq=%d",
                         steps - 1, reading.packet_seq)
            if reading.pulse_count < prev.pulse_count:
                log.warning(
                    "pulse counter went from %d to %d: wrapped or "
                    "transmitter restarted",
                    prev.pulse_count, reading.pulse_count,
                )
            delta = reading.pulses_since(prev)
        self._stale = 0

        log.info(
            "serial %d seq=%d power=%d W pulses=%d delta=%s energy=%.3f kWh "
            "battery=%d%% status=0x%04X",
            reading.serial,
            reading.packet_seq,
            reading.power(self._pulses_per_kwh),
            reading.pulse_count,
            delta if delta is not None else "-",
            reading.energy_kwh(self._pulses_per_kwh),
            reading.battery_percentage,
            reading.status,
        )

        self._previous = reading
        return reading

    def _stale_run(self, reading: Reading, prev: Reading) -> bool:
        """Count a packet older than *prev*; True once it looks like a restart."""
        self._stale += 1
        if self._stale < RESYNC_AFTER:
            log.debug("stale packet seq=%d after seq=%d",
                      reading.packet_seq, prev.packet_seq)
            return False
        log.warning("sequence went back from %d to %d: resynchronising",
                    prev.packet_seq, reading.packet_seq)
        return True
