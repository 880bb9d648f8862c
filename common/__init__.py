#!/usr/bin/env python3
"""
Common module for the network blackout simulator
"""

from .errors import SimdownError, CommandError, LockError
from .iface import detect_default_interface, set_link_state
from .netstate import NetworkSnapshot, NetworkStateManager, RestoreResult, ping_gateway
from .notifier import EmailNotifier

__version__ = "1.0.0"
