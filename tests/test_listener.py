"""Tests for sparsnas.listener."""

import logging

from sparsnas.decoder import SparsnasDecoder
from sparsnas.listener import RESYNC_AFTER, Listener

from conftest import (
    FakeReceiver,
    KODARN_PACKET,
    REAL_PACKET,
    REAL_SERIAL,
    make_packet,
)


def _listener(packets: list[bytes]) -> Listener:
    """Listener for REAL_SERIAL fed from canned packets."""
    return Listener(FakeReceiver(packets), SparsnasDecoder(REAL_SERIAL), 1000)


class TestReceive:
    """Tests for receive."""

    def test_decodes_packet(self):
        """receive returns the decoded reading."""
        listener = _listener([REAL_PACKET])

        reading = listener.receive(1.0)

        assert reading is not None
        assert reading.pulse_count == 4555342
        assert listener.previous == reading

    def test_empty_recv_returns_none(self):
        """Empty recv (timeout) returns None."""
        assert _listener([b""]).receive(1.0) is None

    def test_bad_crc_returns_none(self):
        """Corrupted packet returns None and is logged at DEBUG."""
        corrupted = REAL_PACKET[:-1] + bytes([REAL_PACKET[-1] ^ 0xFF])
        listener = _listener([corrupted])

        assert listener.receive(1.0) is None
        assert listener.previous is None

    def test_foreign_packet_returns_none(self):
        """Packet from a neighbouring transmitter is dropped."""
        assert _listener([KODARN_PACKET]).receive(1.0) is None

    def test_short_packet_returns_none(self):
        """Truncated packet is dropped."""
        assert _listener([REAL_PACKET[:10]]).receive(1.0) is None

    def test_foreign_packet_keeps_previous(self):
        """A dropped packet does not replace the last good reading."""
        listener = _listener([REAL_PACKET, KODARN_PACKET])
        first = listener.receive(1.0)
        listener.receive(1.0)
        assert listener.previous == first


class TestSequence:
    """Comparison of successive readings."""

    def test_consecutive_readings(self):
        """Two consecutive packets both produce readings."""
        listener = _listener([
            make_packet(seq=10, pulses=100),
            make_packet(seq=11, pulses=112),
        ])
        r1 = listener.receive(1.0)
        r2 = listener.receive(1.0)
        assert r2.pulses_since(r1) == 12

    def test_repeated_packet_dropped(self):
        """Same sequence number twice yields None the second time."""
        packet = make_packet(seq=10)
        listener = _listener([packet, packet])
        assert listener.receive(1.0) is not None
        assert listener.receive(1.0) is None

    def test_missed_packets_logged(self, caplog):
        """A gap in the sequence is reported."""
        listener = _listener([
            make_packet(seq=10),
            make_packet(seq=14),
        ])
        with caplog.at_level(logging.INFO, logger="sparsnas.listener"):
            listener.receive(1.0)
            reading = listener.receive(1.0)
        assert reading.packet_seq == 14
        assert "missed 3 packet(s)" in caplog.text

    def test_counter_reset_logged(self, caplog):
        """Pulse counter going backwards logs a warning."""
        listener = _listener([
            make_packet(seq=10, pulses=5000),
            make_packet(seq=11, pulses=3),
        ])
        with caplog.at_level(logging.WARNING, logger="sparsnas.listener"):
            listener.receive(1.0)
            reading = listener.receive(1.0)
        assert reading is not None
        assert "wrapped or transmitter restarted" in caplog.text

    def test_sequence_wrap_is_consecutive(self, caplog):
        """Sequence 0xFFFF followed by 0 is not a gap."""
        listener = _listener([
            make_packet(seq=0xFFFF),
            make_packet(seq=0),
        ])
        with caplog.at_level(logging.INFO, logger="sparsnas.listener"):
            listener.receive(1.0)
            assert listener.receive(1.0) is not None
        assert "missed" not in caplog.text

    def test_reading_logged_with_power(self, caplog):
        """Each reading is logged with its power."""
        listener = _listener([REAL_PACKET])
        with caplog.at_level(logging.INFO, logger="sparsnas.listener"):
            listener.receive(1.0)
        assert "power=1845 W" in caplog.text


class TestStalePackets:
    """Packets with a sequence number behind the previous reading."""

    def test_late_duplicate_dropped(self, caplog):
        """A packet one step behind is dropped without gap or wrap reports."""
        listener = _listener([
            make_packet(seq=100, pulses=5000),
            make_packet(seq=99, pulses=4990),
        ])
        with caplog.at_level(logging.DEBUG, logger="sparsnas.listener"):
            first = listener.receive(1.0)
            assert listener.receive(1.0) is None
        assert listener.previous == first
        assert "missed" not in caplog.text
        assert "wrapped" not in caplog.text
        assert "stale packet seq=99 after seq=100" in caplog.text

    def test_late_duplicate_across_wrap(self, caplog):
        """Sequence 0xFFFF arriving after 0 is stale, not a gap."""
        listener = _listener([
            make_packet(seq=0),
            make_packet(seq=0xFFFF),
        ])
        with caplog.at_level(logging.INFO, logger="sparsnas.listener"):
            listener.receive(1.0)
            assert listener.receive(1.0) is None
        assert "missed" not in caplog.text

    def test_next_packet_after_stale(self, caplog):
        """The packet following a stale one is compared with the last good one."""
        listener = _listener([
            make_packet(seq=100, pulses=5000),
            make_packet(seq=98, pulses=4980),
            make_packet(seq=101, pulses=5010),
        ])
        with caplog.at_level(logging.INFO, logger="sparsnas.listener"):
            first = listener.receive(1.0)
            listener.receive(1.0)
            third = listener.receive(1.0)
        assert third.pulses_since(first) == 10
        assert "missed" not in caplog.text

    def test_restart_resynchronises(self, caplog):
        """Several packets in a row from behind are accepted as a restart."""
        packets = [make_packet(seq=20000, pulses=5000)]
        packets += [make_packet(seq=s, pulses=s) for s in range(RESYNC_AFTER)]
        listener = _listener(packets)
        with caplog.at_level(logging.WARNING, logger="sparsnas.listener"):
            results = [listener.receive(1.0) for _ in packets]
        assert results[1:-1] == [None] * (RESYNC_AFTER - 1)
        assert results[-1].packet_seq == RESYNC_AFTER - 1
        assert listener.previous == results[-1]
        assert "resynchronising" in caplog.text
