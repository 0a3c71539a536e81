"""Broadcast address discovery across local network interfaces."""

from __future__ import annotations

import ipaddress
import logging
import socket
from typing import Optional

import psutil

from wakegate.utils.wol import WakeTarget, parse_mac_address

logger = logging.getLogger(__name__)

LIMITED_BROADCAST = "255.255.255.255"


def subnet_broadcast(address: str, netmask: str) -> str:
    """Directed broadcast of a subnet: (address & mask) | ~mask, per octet."""
    addr = ipaddress.IPv4Address(address).packed
    mask = ipaddress.IPv4Address(netmask).packed
    return str(ipaddress.IPv4Address(bytes((a & m) | (~m & 0xFF) for a, m in zip(addr, mask))))


def _interface_broadcasts(interface: Optional[str]) -> list[str]:
    """Scan interfaces that are up and collect one broadcast per IPv4 subnet."""
    addrs = psutil.net_if_addrs()
    stats = psutil.net_if_stats()

    if interface and interface not in addrs:
        logger.warning("Network interface %r not found (available: %s)", interface, ", ".join(addrs))
        return []

    found: list[str] = []
    for name, entries in addrs.items():
        if interface and name != interface:
            continue
        st = stats.get(name)
        if st is None or not st.isup:
            continue

        for entry in entries:
            if entry.family != socket.AF_INET or not entry.netmask:
                continue
            try:
                ip = ipaddress.IPv4Address(entry.address)
                if ip.is_loopback:
                    continue
                broadcast = subnet_broadcast(entry.address, entry.netmask)
            except ValueError:
                logger.debug("Skipping %s on %s: unparsable address/netmask", entry.address, name)
                continue
            # /32 point-to-point links have no broadcast of their own
            if broadcast == entry.address:
                continue
            if broadcast not in found:
                logger.debug("Interface %s: %s/%s -> broadcast %s", name, entry.address, entry.netmask, broadcast)
                found.append(broadcast)
    return found


def resolve_broadcast_addresses(
    broadcast_address: Optional[str] = None,
    interface: Optional[str] = None,
) -> list[str]:
    """
    Determine the broadcast destinations for magic packets.

    Args:
        broadcast_address: Explicit broadcast address; skips discovery
        interface: Only scan this interface

    Returns:
        Ordered, de-duplicated broadcast addresses (never empty)
    """
    if broadcast_address:
        return [broadcast_address]

    try:
        found = _interface_broadcasts(interface)
    except OSError as e:
        logger.warning("Interface scan failed: %s", e)
        found = []

    if not found:
        logger.warning("No broadcast address discovered — falling back to %s", LIMITED_BROADCAST)
        return [LIMITED_BROADCAST]

    logger.info("Discovered broadcast addresses: %s", ", ".join(found))
    return found


def build_wake_target(
    mac_address: str,
    port: int = 9,
    ip_address: Optional[str] = None,
    broadcast_address: Optional[str] = None,
    interface: Optional[str] = None,
) -> WakeTarget:
    """Parse the MAC and resolve destinations once. Invalid MACs are fatal."""
    return WakeTarget(
        hardware_address=parse_mac_address(mac_address),
        unicast_address=ip_address or None,
        broadcast_addresses=tuple(resolve_broadcast_addresses(broadcast_address, interface)),
        port=port,
    )
