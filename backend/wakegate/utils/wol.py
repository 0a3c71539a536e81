"""Wake-on-LAN (WOL) implementation — magic packet codec and UDP delivery."""

from __future__ import annotations

import logging
import socket
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

MAC_SEPARATORS = (":", "-", ".")
SYNC_STREAM = b"\xff" * 6
MAC_REPETITIONS = 16
MAGIC_PACKET_SIZE = len(SYNC_STREAM) + 6 * MAC_REPETITIONS  # 102


class InvalidAddressFormat(ValueError):
    """Raised when a MAC address cannot be parsed."""


class AllDestinationsFailed(OSError):
    """Raised when the magic packet could not be sent to any destination."""

    def __init__(self, errors: list[tuple[str, Exception]]):
        self.errors = errors
        if errors:
            dest, last = errors[-1]
            msg = f"all {len(errors)} destination(s) failed, last {dest}: {last}"
        else:
            msg = "no destinations to send to"
        super().__init__(msg)


@dataclass(frozen=True)
class WakeTarget:
    """Where the magic packet for one machine goes."""

    hardware_address: bytes
    unicast_address: Optional[str]
    broadcast_addresses: tuple[str, ...]
    port: int = 9

    @property
    def destinations(self) -> list[str]:
        """Unicast first, then every broadcast address, without duplicates."""
        out: list[str] = []
        for addr in (self.unicast_address, *self.broadcast_addresses):
            if addr and addr not in out:
                out.append(addr)
        return out


def parse_mac_address(mac_address: str) -> bytes:
    """
    Parse a textual MAC address into 6 raw bytes.

    Accepts "AA:BB:CC:DD:EE:FF", "AA-BB-CC-DD-EE-FF", "AABB.CCDD.EEFF"
    or "AABBCCDDEEFF", in any case.

    Raises:
        InvalidAddressFormat: wrong length or non-hex characters
    """
    mac = mac_address
    for sep in MAC_SEPARATORS:
        mac = mac.replace(sep, "")
    mac = mac.lower()

    if len(mac) != 12:
        raise InvalidAddressFormat(
            f"Invalid MAC address {mac_address!r}: expected 12 hex characters, got {len(mac)}"
        )
    if any(c not in "0123456789abcdef" for c in mac):
        raise InvalidAddressFormat(f"Invalid MAC address {mac_address!r}: non-hex character")

    return bytes.fromhex(mac)


def build_magic_packet(mac_bytes: bytes) -> bytes:
    """Magic packet: 6x 0xFF + 16x MAC address."""
    if len(mac_bytes) != 6:
        raise InvalidAddressFormat(f"MAC address must be 6 bytes, got {len(mac_bytes)}")
    return SYNC_STREAM + mac_bytes * MAC_REPETITIONS


def send_packet(packet: bytes, address: str, port: int) -> None:
    """Send one datagram on a fresh socket."""
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.sendto(packet, (address, port))


def deliver(packet: bytes, target: WakeTarget) -> int:
    """
    Send the magic packet to every destination of the target.

    Broadcasts do not reliably cross container/bridge networks, so the
    packet goes to the unicast address (if any) and to every broadcast
    address; one success is enough.

    Returns:
        Number of destinations the packet was sent to

    Raises:
        AllDestinationsFailed: every send failed
    """
    errors: list[tuple[str, Exception]] = []
    sent = 0

    for address in target.destinations:
        try:
            send_packet(packet, address, target.port)
        except OSError as e:
            logger.warning("WOL send to %s:%d failed: %s", address, target.port, e)
            errors.append((address, e))
            continue
        sent += 1
        logger.debug("Magic packet sent to %s:%d", address, target.port)

    if sent == 0:
        raise AllDestinationsFailed(errors)

    logger.info(
        "Magic packet for %s delivered to %d/%d destination(s)",
        target.hardware_address.hex(":"), sent, sent + len(errors),
    )
    return sent
