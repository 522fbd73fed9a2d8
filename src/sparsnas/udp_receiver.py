"""UDP receiver for packets forwarded by a radio bridge.

The bridge demodulates the 868 MHz transmission and sends each
received packet as one datagram: the 20 raw packet bytes, optionally
followed by the radio's RSSI and LQI bytes.  Anything longer is not
a Sparsnas packet (a misdirected sender, or a bridge in text mode)
and is dropped here rather than handed to the decoder.
"""

import logging
import socket

from sparsnas.protocol import PACKET_LEN

log = logging.getLogger(__name__)

# Packet plus RSSI and LQI status bytes appended by CC1101 bridges.
MAX_DATAGRAM = PACKET_LEN + 2

# Large enough that an oversize datagram is seen whole instead of
# being silently truncated to a plausible length.
_RECV_BUFSIZE = 2048


class UDPReceiver:
    """UDP socket for receiving forwarded Sparsnas packets.

    Args:
        port: UDP port to listen on.
        host: Interface address to bind (default all interfaces).

    Attributes:
        oversize: Number of datagrams dropped for exceeding
            ``MAX_DATAGRAM``.
        last_sender: ``(host, port)`` of the last accepted datagram,
            or None.
    """

    def __init__(self, port: int, host: str = "0.0.0.0"):
        """Bind to the UDP port and start listening."""
        self.oversize = 0
        self.last_sender: tuple[str, int] | None = None
        self._sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._sock.bind((host, port))

    @property
    def port(self) -> int:
        """Port actually bound (useful when constructed with port 0)."""
        return self._sock.getsockname()[1]

    def recv(self, timeout_s: float) -> bytes:
        """Receive one forwarded packet.

        Args:
            timeout_s: Timeout in seconds.

        Returns:
            The datagram bytes, or empty bytes on timeout, socket
            error or an oversize datagram.
        """
        self._sock.settimeout(timeout_s)
        try:
            data, sender = self._sock.recvfrom(_RECV_BUFSIZE)
        except socket.timeout:
            return b""
        except OSError as exc:
            log.debug("udp receive failed: %s", exc)
            return b""

        if len(data) > MAX_DATAGRAM:
            self.oversize += 1
            log.debug(
                "dropped %d-byte datagram from %s:%d (max %d)",
                len(data), sender[0], sender[1], MAX_DATAGRAM,
            )
            return b""

        self.last_sender = sender
        return data

    def __enter__(self) -> "UDPReceiver":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def close(self) -> None:
        """Close the socket."""
        self._sock.close()
