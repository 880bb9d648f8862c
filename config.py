#!/usr/bin/env python3
"""
Centralized Configuration System
Default settings for the network blackout simulator and the immutable
per-run settings record built from the command line
"""

import os
from dataclasses import dataclass, replace

from colorama import Fore, Style

# ==========================================
# NETWORK CONFIGURATION
# ==========================================

class NetworkConfig:
    """Interface detection and restoration settings"""

    # Address used to ask the routing table for the outbound interface
    ROUTE_PROBE_ADDRESS = "8.8.8.8"

    # ifupdown stanza file and netplan configuration directory
    INTERFACES_FILE = "/etc/network/interfaces"
    NETPLAN_DIR = "/etc/netplan"

    # Gateway verification after restoration
    GATEWAY_PING_COUNT = 2
    GATEWAY_PING_TIMEOUT = 2  # seconds per probe

# ==========================================
# EMAIL CONFIGURATION
# ==========================================

class EmailConfig:
    """Operator notification defaults"""

    ENABLE_EMAIL_ALERTS = True
    MAIL_COMMAND = "mail"

    EMAIL_TO = "root@localhost"
    EMAIL_FROM = "simdown@localhost"  # must be accepted by the local MTA
    EMAIL_SUBJECT = "[simdown] Network blackout notice"

# ==========================================
# TIMING CONFIGURATION
# ==========================================

class TimingConfig:
    """Blocking waits used during a blackout run"""

    DEFAULT_DURATION = 300  # seconds the interface stays down
    MAIL_DELIVERY_WAIT = 60  # seconds between start notice and link down
    LINK_SETTLE_DELAY = 2  # pause after link up and around ifdown/ifup
    RESTORE_SETTLE_DELAY = 2  # pause before verifying the gateway
    LINK_UP_RETRIES = 1

# ==========================================
# PATH CONFIGURATION
# ==========================================

class PathConfig:
    """File paths for logs and network backups"""

    LOG_FILE = "/var/log/simdown.log"
    BACKUP_DIR = "/tmp/simdown-backup"

    @classmethod
    def addr_backup(cls, interface, backup_dir=None):
        return os.path.join(backup_dir or cls.BACKUP_DIR, f"{interface}_addr.bak")

    @classmethod
    def route_backup(cls, interface, backup_dir=None):
        return os.path.join(backup_dir or cls.BACKUP_DIR, f"{interface}_route.bak")

    @classmethod
    def lock_file(cls, interface, backup_dir=None):
        return os.path.join(backup_dir or cls.BACKUP_DIR, f"{interface}.lock")

# ==========================================
# RUN SETTINGS
# ==========================================

@dataclass(frozen=True)
class BlackoutSettings:
    """Settings for a single blackout run, fixed once parsed"""

    interface: str = ""
    duration: int = TimingConfig.DEFAULT_DURATION
    log_file: str = PathConfig.LOG_FILE
    preview: bool = False
    send_email: bool = EmailConfig.ENABLE_EMAIL_ALERTS
    email_to: str = EmailConfig.EMAIL_TO
    email_from: str = EmailConfig.EMAIL_FROM
    email_subject: str = EmailConfig.EMAIL_SUBJECT
    verbose: bool = False

    def with_interface(self, interface):
        """Return a copy bound to the resolved interface"""
        return replace(self, interface=interface)

# ==========================================
# CONFIGURATION VALIDATION
# ==========================================

def validate_settings(settings):
    """
    Validate run settings, returning (errors, warnings).

    main() resolves the interface and argparse rejects negative durations
    before this runs; those two checks cover settings built directly.
    """
    errors = []
    warnings = []

    if not settings.interface:
        errors.append("Network interface not configured")

    if settings.duration < 0:
        errors.append(f"Blackout duration must be non-negative, got {settings.duration}")
    elif settings.duration == 0:
        warnings.append("Blackout duration is 0 seconds, the link will bounce immediately")

    if settings.send_email:
        if not settings.email_to or "@" not in settings.email_to:
            warnings.append(f"Recipient address looks invalid: {settings.email_to!r}")
        if not settings.email_from or "@" not in settings.email_from:
            warnings.append(f"Sender address looks invalid: {settings.email_from!r}")

    return errors, warnings

def display_configuration(settings):
    """Display the settings of a run"""
    print(f"{Fore.CYAN}{'=' * 60}")
    print("  SIMDOWN CONFIGURATION")
    print(f"{'=' * 60}{Style.RESET_ALL}")

    print(f"  Interface to disconnect: {Fore.GREEN}{settings.interface}{Style.RESET_ALL}")
    print(f"  Duration: {settings.duration} seconds")
    print(f"  Log: {settings.log_file}")
    if settings.send_email:
        print(f"  Mail recipient: {settings.email_to} (from: {settings.email_from})")
        print(f"  Mail subject: {settings.email_subject}")
    else:
        print(f"  Mail notifications: {Fore.YELLOW}disabled{Style.RESET_ALL}")
    print(f"  Backup directory: {PathConfig.BACKUP_DIR}")
