"""Receiver daemon -- decodes packets from one Sparsnas transmitter.

Packets arrive already demodulated from a radio bridge, either as
UDP datagrams or as hex lines on a serial port.

Foreground loop driven by a TOML config file.  Shuts down cleanly
on SIGINT or SIGTERM.

Example:
    Run from the command line::

        sparsnas sparsnas.toml -v
"""

import argparse
import logging
import signal
import threading

from sparsnas.config import TIMEOUT_S, load_config
from sparsnas.decoder import SparsnasDecoder
from sparsnas.listener import Listener
from sparsnas.serial_receiver import SerialReceiver
from sparsnas.udp_receiver import UDPReceiver

log = logging.getLogger(__name__)

_shutdown = threading.Event()


def _on_signal(signum: int, frame) -> None:
    """Set the module-level shutdown event on SIGINT/SIGTERM."""
    _shutdown.set()


def run_listener(cfg: dict, receiver, shutdown: threading.Event) -> int:
    """Run the receive loop until *shutdown* is set.

    Returns the number of readings decoded.
    """
    decoder = SparsnasDecoder(cfg["device_serial"])
    listener = Listener(receiver, decoder, cfg["pulses_per_kwh"])
    count = 0

    while not shutdown.is_set():
        # Use timeout so we check shutdown flag periodically
        reading = listener.receive(TIMEOUT_S)
        if reading is not None:
            count += 1

    return count


def open_receiver(cfg: dict):
    """Create the receiver selected by ``cfg["transport"]``."""
    if cfg["transport"] == "serial":
        log.info(
            "starting: transport=serial port=%s baudrate=%d device_serial=%d",
            cfg["serial_port"], cfg["baudrate"], cfg["device_serial"],
        )
        return SerialReceiver(cfg["serial_port"], cfg["baudrate"])

    log.info(
        "starting: transport=udp port=%d device_serial=%d",
        cfg["udp_port"], cfg["device_serial"],
    )
    return UDPReceiver(cfg["udp_port"])


def main() -> None:
    """CLI entry point -- parse args, load config, run the daemon."""
    _shutdown.clear()

    parser = argparse.ArgumentParser(description="Sparsnas energy meter receiver")
    parser.add_argument("config", help="path to TOML config file")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="enable debug logging",
    )
    args = parser.parse_args()

    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        level=level,
    )

    cfg = load_config(args.config)

    signal.signal(signal.SIGINT, _on_signal)
    signal.signal(signal.SIGTERM, _on_signal)

    receiver = open_receiver(cfg)
    try:
        count = run_listener(cfg, receiver, _shutdown)
    finally:
        receiver.close()
    log.info("shutting down after %d readings", count)


if __name__ == "__main__":
    main()
