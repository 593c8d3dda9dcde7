"""
Loopback address classification.

The remote endpoint is reached over https unless it is on the local
machine, in which case plain http is used.
"""

from typing import Tuple

LOOPBACK_HOSTS = ("localhost", "127.0.0.1", "::1")


def split_host_port(addr: str) -> Tuple[str, str]:
    """
    Split "host:port", "[ipv6]:port" into host and port.

    Raises:
        ValueError: If the port is missing, or an unbracketed host
            contains colons
    """
    if addr.startswith("["):
        end = addr.find("]")
        if end < 0:
            raise ValueError(f"missing ']' in address: {addr}")
        host, rest = addr[1:end], addr[end + 1:]
        if not rest.startswith(":"):
            raise ValueError(f"missing port in address: {addr}")
        port = rest[1:]
    else:
        host, sep, port = addr.rpartition(":")
        if not sep:
            raise ValueError(f"missing port in address: {addr}")
        if ":" in host:
            raise ValueError(f"too many colons in address: {addr}")
    if ":" in port:
        raise ValueError(f"too many colons in address: {addr}")
    return host, port


def is_loopback_addr(addr: str) -> bool:
    """
    Check whether a host:port address points at the local machine.

    An address that cannot be split (e.g. no port) is treated as remote.
    """
    try:
        host, _ = split_host_port(addr)
    except ValueError:
        return False
    return host in LOOPBACK_HOSTS
