#!/usr/bin/env python3
"""
Interface discovery and link state control through iproute2
"""

import logging
import re

from config import NetworkConfig
from .errors import CommandError
from .utils import run_command

logger = logging.getLogger(__name__)

_DEV_RE = re.compile(r'\bdev\s+(\S+)')

def parse_route_device(output):
    """Return the first device named in `ip route` output, or None"""
    match = _DEV_RE.search(output or "")
    return match.group(1) if match else None

def detect_default_interface(runner=run_command, probe_address=None):
    """Get the interface the kernel would use to reach the probe address"""
    probe_address = probe_address or NetworkConfig.ROUTE_PROBE_ADDRESS
    try:
        result = runner(['ip', 'route', 'get', probe_address])
    except CommandError as e:
        logger.error(f"Failed to query routing table: {e}")
        return None

    if result.returncode != 0:
        logger.debug(f"ip route get {probe_address} failed: {result.stderr.strip()}")
        return None
    return parse_route_device(result.stdout)

def set_link_state(interface, state, runner=run_command):
    """
    Bring the interface administratively up or down.
    Raises CommandError if iproute2 rejects the change.
    """
    if state not in ('up', 'down'):
        raise ValueError(f"Unknown link state: {state}")
    runner(['ip', 'link', 'set', interface, state], check=True)
