import socket
from contextlib import closing


def is_port_open(host: str, port: int, timeout: float = 1) -> bool:
    """Checks whether a TCP connection can be established to the given host and port."""
    with closing(socket.socket(socket.AF_INET6 if ":" in host else socket.AF_INET, socket.SOCK_STREAM)) as sock:
        sock.settimeout(timeout)
        return sock.connect_ex((host, port)) == 0


def get_free_tcp_port() -> int:
    """
    Tries to bind a socket to port 0 and returns the port that was assigned by the system.

    :return: a free TCP port
    """
    with closing(socket.socket(socket.AF_INET, socket.SOCK_STREAM)) as tcp:
        tcp.bind(("", 0))
        _, port = tcp.getsockname()
        return port
