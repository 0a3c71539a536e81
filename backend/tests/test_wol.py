"""Tests for magic packet codec and multi-destination delivery."""

from unittest.mock import MagicMock, call, patch

import pytest

from wakegate.utils.wol import (
    MAGIC_PACKET_SIZE,
    AllDestinationsFailed,
    InvalidAddressFormat,
    WakeTarget,
    build_magic_packet,
    deliver,
    parse_mac_address,
)

MAC = bytes([0x00, 0x11, 0x22, 0x33, 0x44, 0x55])


class TestParseMacAddress:
    @pytest.mark.parametrize(
        "text",
        [
            "00:11:22:33:44:55",
            "00-11-22-33-44-55",
            "0011.2233.4455",
            "001122334455",
            "00:11-22.33:44-55",
        ],
    )
    def test_separators(self, text):
        assert parse_mac_address(text) == MAC

    def test_uppercase_and_lowercase_agree(self):
        expected = bytes([0xAA, 0xBB, 0xCC, 0xDD, 0xEE, 0xFF])
        assert parse_mac_address("AA:BB:CC:DD:EE:FF") == expected
        assert parse_mac_address("aa:bb:cc:dd:ee:ff") == expected
        assert parse_mac_address("aA-Bb-cC-dD-Ee-fF") == expected

    @pytest.mark.parametrize(
        "text",
        ["00:11:22:33:44", "00:11:22:33:44:55:66", "", "0011223344556"],
    )
    def test_invalid_length(self, text):
        with pytest.raises(InvalidAddressFormat):
            parse_mac_address(text)

    @pytest.mark.parametrize("text", ["GG:11:22:33:44:55", "00 11 22 33 44 55", "00:11:22:33:44:5z"])
    def test_invalid_characters(self, text):
        with pytest.raises(InvalidAddressFormat):
            parse_mac_address(text)

    def test_error_is_value_error(self):
        with pytest.raises(ValueError):
            parse_mac_address("nope")


class TestBuildMagicPacket:
    def test_golden_bytes(self):
        packet = build_magic_packet(parse_mac_address("00:11:22:33:44:55"))

        assert len(packet) == MAGIC_PACKET_SIZE == 102
        assert packet[:6] == b"\xff" * 6
        for i in range(16):
            offset = 6 + i * 6
            assert packet[offset:offset + 6] == MAC
        assert packet == bytes.fromhex("ffffffffffff" + "001122334455" * 16)

    def test_deterministic(self):
        assert build_magic_packet(MAC) == build_magic_packet(MAC)

    def test_rejects_wrong_length(self):
        with pytest.raises(InvalidAddressFormat):
            build_magic_packet(b"\x00\x11\x22")


class TestWakeTarget:
    def test_unicast_first_then_broadcasts_deduplicated(self):
        target = WakeTarget(MAC, "10.0.0.5", ("10.0.0.255", "10.0.0.5", "172.17.255.255"), 9)
        assert target.destinations == ["10.0.0.5", "10.0.0.255", "172.17.255.255"]

    def test_no_unicast(self):
        target = WakeTarget(MAC, None, ("255.255.255.255",), 9)
        assert target.destinations == ["255.255.255.255"]


class TestDeliver:
    @patch("wakegate.utils.wol.send_packet")
    def test_sends_to_every_destination_in_order(self, mock_send: MagicMock):
        target = WakeTarget(MAC, "10.0.0.5", ("10.0.0.255", "172.17.255.255"), 7)
        packet = build_magic_packet(MAC)

        sent = deliver(packet, target)

        assert sent == 3
        assert mock_send.call_args_list == [
            call(packet, "10.0.0.5", 7),
            call(packet, "10.0.0.255", 7),
            call(packet, "172.17.255.255", 7),
        ]

    @patch("wakegate.utils.wol.send_packet")
    def test_partial_failure_still_succeeds(self, mock_send: MagicMock):
        mock_send.side_effect = [OSError("Network is unreachable"), None]
        target = WakeTarget(MAC, "10.0.0.5", ("10.0.0.255",), 9)

        assert deliver(build_magic_packet(MAC), target) == 1
        assert mock_send.call_count == 2

    @patch("wakegate.utils.wol.send_packet")
    def test_all_failures_raise(self, mock_send: MagicMock):
        mock_send.side_effect = [OSError("first"), OSError("last")]
        target = WakeTarget(MAC, "10.0.0.5", ("10.0.0.255",), 9)

        with pytest.raises(AllDestinationsFailed) as exc_info:
            deliver(build_magic_packet(MAC), target)

        assert len(exc_info.value.errors) == 2
        assert "last" in str(exc_info.value)
        assert "10.0.0.255" in str(exc_info.value)

    @patch("wakegate.utils.wol.send_packet")
    def test_no_destinations_raise(self, mock_send: MagicMock):
        target = WakeTarget(MAC, None, (), 9)

        with pytest.raises(AllDestinationsFailed):
            deliver(build_magic_packet(MAC), target)
        mock_send.assert_not_called()

    @patch("wakegate.utils.wol.socket.socket")
    def test_send_packet_uses_broadcast_datagram_socket(self, mock_socket_cls: MagicMock):
        import socket

        sock = mock_socket_cls.return_value.__enter__.return_value
        target = WakeTarget(MAC, None, ("192.0.2.255",), 9)
        packet = build_magic_packet(MAC)

        deliver(packet, target)

        mock_socket_cls.assert_called_once_with(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt.assert_called_once_with(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        sock.sendto.assert_called_once_with(packet, ("192.0.2.255", 9))
