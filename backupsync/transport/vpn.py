"""
OpenVPN tunnel management.

Starts openvpn as a daemon, waits for its tun interface to appear, and adds
the route to the backup network through the tunnel.
"""

from __future__ import annotations

import re
import time
from typing import Callable

from loguru import logger

from backupsync.transport.command import CommandError, run_command

TUN_PATTERN = re.compile(r"^\d+:\s+(tun\d+)[:@]", re.MULTILINE)


class VpnError(RuntimeError):
    """The VPN tunnel could not be established."""


class VpnTunnel:
    """
    An OpenVPN client tunnel plus one static route through it.

    Usage:
        tunnel = VpnTunnel("config.ovpn", "192.168.1.0/24", "10.8.0.1")
        interface = tunnel.connect()
        tunnel.add_route(interface)
        ...
        tunnel.disconnect()
    """

    def __init__(
        self,
        config_file: str,
        route: str,
        gateway: str,
        retry_interval: float = 5,
        max_retries: int = 5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config_file = config_file
        self.route = route
        self.gateway = gateway
        self.retry_interval = retry_interval
        self.max_retries = max_retries
        self._sleep = sleep

    def detect_interface(self) -> str | None:
        """Return the most recently listed tun interface, or None."""
        try:
            result = run_command(["ip", "-o", "link", "show"], timeout=30)
        except CommandError as e:
            logger.debug(f"Could not list interfaces: {e}")
            return None

        interfaces = TUN_PATTERN.findall(result.stdout)
        return interfaces[-1] if interfaces else None

    def is_up(self, interface: str) -> bool:
        try:
            result = run_command(["ip", "a", "show", interface], timeout=30, check=False)
        except CommandError as e:
            logger.debug(f"Could not query {interface}: {e}")
            return False
        return result.returncode == 0

    def connect(self) -> str:
        """
        Start OpenVPN and wait for the tunnel.

        Returns:
            Name of the tun interface

        Raises:
            VpnError: If OpenVPN fails to start or no interface comes up
                within max_retries attempts
        """
        logger.info("Starting OpenVPN connection...")
        try:
            run_command(["openvpn", "--config", self.config_file, "--daemon"], timeout=60)
        except CommandError as e:
            raise VpnError(f"OpenVPN failed to start: {e}") from e
        self._sleep(2)

        for attempt in range(1, self.max_retries + 1):
            logger.info(f"Checking VPN connection (Attempt {attempt} of {self.max_retries})...")
            self._sleep(self.retry_interval)
            interface = self.detect_interface()
            if interface and self.is_up(interface):
                logger.info(f"VPN connection established successfully on {interface}.")
                return interface
            logger.info(f"No tun interface detected. Current tun interface: {interface or ''}")

        raise VpnError(f"Failed to establish VPN connection after {self.max_retries} attempts.")

    def route_exists(self) -> bool:
        try:
            result = run_command(["ip", "route", "show", self.route], timeout=30, check=False)
        except CommandError as e:
            logger.warning(f"Could not list routes for {self.route}: {e}")
            return False
        return result.returncode == 0 and self.gateway in result.stdout

    def add_route(self, interface: str) -> bool:
        """
        Route the backup network through the tunnel unless already routed.

        Returns:
            True if the route is in place afterwards
        """
        if not interface:
            logger.error("No tun interface detected. Cannot add route.")
            return False

        if self.route_exists():
            logger.info(f"Route already exists: {self.route} via {self.gateway}")
            return True

        logger.info(f"Attempting to add route: ip route add {self.route} via {self.gateway} dev {interface}")
        try:
            run_command(["ip", "route", "add", self.route, "via", self.gateway, "dev", interface], timeout=30)
        except CommandError as e:
            logger.error(f"Error adding route: {self.route} via {self.gateway}: {e}")
            return False

        logger.info(f"Route added successfully: {self.route} via {self.gateway}")
        return True

    def disconnect(self) -> bool:
        """
        Stop OpenVPN.

        Returns:
            True if no tun interface remains afterwards
        """
        logger.info("Stopping OpenVPN...")
        try:
            run_command(["pkill", "openvpn"], timeout=30, check=False)
        except CommandError as e:
            logger.error(f"Error stopping OpenVPN: {e}")
            return False

        active = self.detect_interface()
        if active is None:
            logger.info("VPN disconnected successfully.")
            return True

        logger.error(f"Failed to disconnect VPN. Active interface: {active}")
        return False
