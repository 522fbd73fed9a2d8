#!/usr/bin/env python3
"""Virtual Sparsnas transmitter for testing the daemon.

Sends one packet every few seconds to a UDP port, as a radio bridge
would forward it.  Power wanders around 1.5 kW and the pulse counter
advances to match.  About 10% of packets are corrupted in one byte
so the CRC check is exercised.

Usage:
    python udp_simulator.py <serial> <port> [interval]

Args:
    serial: Label serial number to transmit as (e.g. 400547040).
    port: UDP port on localhost the daemon listens on.
    interval: Seconds between packets (default 15, as the real device).
"""

import random
import socket
import sys
import time

# Add parent src to path so we can import sparsnas
sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parents[1] / "src"))

from sparsnas.protocol import encode_packet
from sparsnas.reading import POWER_CONSTANT

_PULSES_PER_KWH = 1000


def run(serial: int, port: int, interval: float) -> None:
    """Run the transmit loop until interrupted."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    seq = random.randint(0, 0xFFFF)
    pulses = 0
    watts = 1500

    print("udp_simulator: serial={} sending to port {}".format(serial, port),
          flush=True)

    try:
        while True:
            watts = max(100, watts + random.randint(-200, 200))
            tbp = POWER_CONSTANT // (_PULSES_PER_KWH * watts)
            pulses += round(watts * interval * _PULSES_PER_KWH / 3_600_000)
            seq += 1

            packet = bytearray(encode_packet(serial, seq, tbp, pulses, 100))
            if random.random() < 0.1:
                packet[random.randrange(len(packet))] ^= 0xFF
            sock.sendto(bytes(packet), ("127.0.0.1", port))
            time.sleep(interval)
    except KeyboardInterrupt:
        pass
    finally:
        sock.close()


if __name__ == "__main__":
    if len(sys.argv) not in (3, 4):
        print("usage: udp_simulator.py <serial> <port> [interval]",
              file=sys.stderr)
        sys.exit(1)
    interval = float(sys.argv[3]) if len(sys.argv) == 4 else 15.0
    run(int(sys.argv[1]), int(sys.argv[2]), interval)
