"""Serial receiver for packets printed by a radio bridge.

Wraps pyserial.  The bridge (typically a CC1101 on a microcontroller)
writes one received packet per line as hex digits, optionally
separated by spaces::

    11 E0 2B 07 0E A2 1D 28 A7 80 09 12 BE 47 8A 20 5B 14 69 57

Lines that are not valid hex are skipped.  A line cut in two by the
read timeout is held until its newline arrives.
"""

import logging

import serial

log = logging.getLogger(__name__)

# Longest partial line kept while waiting for its newline.  A packet
# printed with separators and CRLF is 61 characters.
MAX_LINE = 256


class SerialReceiver:
    """Line-oriented serial link to a radio bridge.

    Duck-typed like ``UDPReceiver`` -- the listener only needs
    ``recv(timeout_s)``.

    Args:
        port: Serial port device path (e.g. ``"/dev/ttyUSB0"``).
        baudrate: Baud rate for the connection (e.g. ``115200``).
    """

    def __init__(self, port: str, baudrate: int):
        """Open the serial port."""
        self._ser = serial.Serial(port, baudrate, timeout=0)
        self._buf = bytearray()

    def recv(self, timeout_s: float) -> bytes:
        """Read until a complete line and return the packet it encodes.

        Bytes read before the timeout without a newline are kept and
        completed by the next call.

        Returns:
            bytes: Packet bytes, or ``b""`` on timeout, an unfinished
                line, or a line that is not hex.
        """
        self._ser.timeout = timeout_s
        self._buf += self._ser.readline()
        if not self._buf.endswith(b"\n"):
            if len(self._buf) > MAX_LINE:
                log.debug("discarding %d bytes without newline", len(self._buf))
                self._buf.clear()
            return b""

        line = bytes(self._buf)
        self._buf.clear()

        text = line.decode("ascii", errors="replace").strip()
        if not text:
            return b""

        try:
            return bytes.fromhex(text)
        except ValueError:
            log.debug("ignoring non-hex line: %r", text)
            return b""

    def __enter__(self) -> "SerialReceiver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the serial port."""
        self._ser.close()
