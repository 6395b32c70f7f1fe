import socket
from typing import List


def _is_usable_ipv4(address: str) -> bool:
    return bool(address) and not address.startswith("127.") and address != "0.0.0.0"


def get_network_ip() -> str:
    """First non-loopback IPv4 address of this host, or "localhost"."""
    candidates: List[str] = []
    try:
        for info in socket.getaddrinfo(socket.gethostname(), None, socket.AF_INET):
            candidates.append(str(info[4][0]))
    except OSError:
        pass

    # Connecting a UDP socket sends nothing; it only picks the outbound interface.
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("10.255.255.255", 1))
            candidates.append(s.getsockname()[0])
    except OSError:
        pass

    for address in candidates:
        if _is_usable_ipv4(address):
            return address
    return "localhost"
