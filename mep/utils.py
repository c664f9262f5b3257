import socket
import logging

logger = logging.getLogger("mep")

PORT = 12013


class UDPHandler(logging.Handler):
    """Send log records over UDP, so they can be shown in another terminal."""

    udp_address = ("127.0.0.1", PORT)

    def __init__(self):
        super().__init__()
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)

    def emit(self, record):
        msg = self.format(record)
        bb = msg.encode()
        size = 2**10
        while bb:
            bb1 = bb[:size]
            bb = bb[size:]
            self._socket.sendto(bb1, self.udp_address)

    def close(self):
        self._socket.close()
        super().close()


def enable_log_forwarding(level=logging.DEBUG):
    """Forward mep's logs to ``mep --listen``.

    While a prompt is active, it owns the terminal, so logs cannot be written
    to stdout or stderr without messing up the screen.
    """
    for handler in logger.handlers:
        if isinstance(handler, UDPHandler):
            return handler
    handler = UDPHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(message)s"))
    logger.addHandler(handler)
    logger.setLevel(level)
    return handler


def listen_to_logs():
    """Called from ``mep --listen``.

    This way we can see the logs from another process, so it does not get
    mixed up in the prompt's output.
    """

    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", PORT))

    while True:
        data, addr = sock.recvfrom(2**20)
        print(data.decode())
