#!/usr/bin/env python3
"""Decode a single captured Sparsnas packet.

Usage:
    python decode_packet.py <serial> <hex> [--pulses-per-kwh N] [--nocrc]

Args:
    serial: Label serial number of the transmitter (9 digits).
    hex: Packet bytes as hex, spaces allowed (quote them).

Example:
    python decode_packet.py 400547040 \\
        "11 e0 2b 07 0e a2 1d 28 a7 80 09 12 be 47 8a 20 5b 14 69 57"
"""

import argparse
import sys

# Add parent src to path so we can import sparsnas
sys.path.insert(0, str(__import__("pathlib").Path(__file__).resolve().parents[1] / "src"))

from sparsnas.decoder import SparsnasDecoder
from sparsnas.protocol import (
    DecodeError,
    InvalidCalibration,
    deobfuscate,
    derive_key,
)


def run(serial: int, packet: bytes, pulses_per_kwh: int, nocrc: bool) -> int:
    """Decode *packet* for *serial* and print the fields.

    Returns a process exit status.
    """
    decoder = SparsnasDecoder(serial)
    print("key:       {}".format(derive_key(serial).hex(" ")))
    if len(packet) >= 18:
        print("plain:     {}".format(deobfuscate(packet, derive_key(serial)).hex(" ")))

    try:
        if nocrc:
            reading = decoder.decode_nocrc(packet)
        else:
            reading = decoder.decode(packet)
    except DecodeError as exc:
        print("error:     {}: {}".format(type(exc).__name__, exc))
        return 1

    print("serial:    {}".format(reading.serial))
    print("seq:       {}".format(reading.packet_seq))
    print("status:    0x{:04X}".format(reading.status))
    print("tbp:       {}".format(reading.time_between_pulses))
    print("pulses:    {}".format(reading.pulse_count))
    print("battery:   {}%".format(reading.battery_percentage))
    print("crc valid: {}".format(reading.crc_valid))
    try:
        watts = decoder.power(reading, pulses_per_kwh)
        kwh = reading.energy_kwh(pulses_per_kwh)
    except InvalidCalibration as exc:
        print("error:     {}: {}".format(type(exc).__name__, exc))
        return 1
    print("power:     {} W".format(watts))
    print("energy:    {:.3f} kWh".format(kwh))
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="decode one Sparsnas packet")
    parser.add_argument("serial", type=int, help="label serial number")
    parser.add_argument("hex", help="packet bytes as hex")
    parser.add_argument("--pulses-per-kwh", type=int, default=1000)
    parser.add_argument(
        "--nocrc", action="store_true", help="packet has no trailing CRC",
    )
    args = parser.parse_args()
    sys.exit(run(args.serial, bytes.fromhex(args.hex), args.pulses_per_kwh,
                 args.nocrc))
