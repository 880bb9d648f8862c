#!/usr/bin/env python3
"""
Network State Manager - backs up and restores interface addressing and routes

Before a blackout the interface's `ip addr show` listing and the full
`ip route show` table are written to a per-interface pair of files. After the
link comes back, one restoration strategy is applied:

    1. ifupdown  - ifdown/ifup when the interface has a stanza in
                   /etc/network/interfaces
    2. netplan   - `netplan apply` (reapplies every interface on the host)
    3. manual    - flush the interface, then replay the backed-up addresses
                   and routes line by line

Finally the default gateway recorded in the backup is probed with ICMP echo.
The probe result is informational only.
"""

import fcntl
import glob
import logging
import os
import re
import time
from contextlib import contextmanager
from dataclasses import dataclass, field

from scapy.all import ICMP, IP, sr1

from config import NetworkConfig, PathConfig, TimingConfig
from .errors import CommandError, LockError
from .utils import command_exists, run_command

logger = logging.getLogger(__name__)

STRATEGY_IFUPDOWN = "ifupdown"
STRATEGY_NETPLAN = "netplan"
STRATEGY_MANUAL = "manual"
STRATEGY_SKIPPED = "skipped"

@dataclass
class NetworkSnapshot:
    """Saved address and route state for one interface"""

    interface: str
    addr_file: str
    route_file: str
    addr_dump: str = ""
    route_dump: str = ""
    errors: list = field(default_factory=list)

    @property
    def ok(self):
        """True when both dumps were captured and are non-empty"""
        return not self.errors and bool(self.addr_dump.strip()) and bool(self.route_dump.strip())

    def addresses(self):
        """IPv4 addresses in ADDR/PREFIX form, in listing order"""
        found = []
        for line in self.addr_dump.splitlines():
            parts = line.split()
            if len(parts) >= 2 and parts[0] == 'inet':
                found.append(parts[1])
        return found

    def routes(self):
        """Route lines exactly as `ip route show` printed them"""
        return [line.strip() for line in self.route_dump.splitlines() if line.strip()]

    def default_gateway(self):
        """Gateway of the first default route, or None"""
        for line in self.route_dump.splitlines():
            if line.startswith('default'):
                parts = line.split()
                return parts[2] if len(parts) >= 3 else None
        return None

    @classmethod
    def from_files(cls, interface, addr_file, route_file):
        """Load a snapshot previously written by NetworkStateManager.backup()"""
        snapshot = cls(interface, addr_file, route_file)
        for attr, path in (('addr_dump', addr_file), ('route_dump', route_file)):
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    setattr(snapshot, attr, f.read())
            except OSError as e:
                snapshot.errors.append(f"Cannot read {path}: {e}")
        return snapshot

@dataclass
class RestoreResult:
    """Outcome of a restoration attempt"""

    strategy: str
    success: bool
    gateway: str = None
    gateway_reachable: bool = None

def ping_gateway(gateway, count=None, timeout=None):
    """
    Send ICMP echo requests to the gateway with scapy.
    Returns True if at least one echo reply arrives.
    """
    count = count or NetworkConfig.GATEWAY_PING_COUNT
    timeout = timeout or NetworkConfig.GATEWAY_PING_TIMEOUT

    replies = 0
    for seq in range(count):
        try:
            reply = sr1(IP(dst=gateway) / ICMP(seq=seq), timeout=timeout, verbose=0)
        except OSError as e:
            logger.warning(f"[VERIFY] ICMP probe to {gateway} could not be sent: {e}")
            return False
        # echo-reply
        if reply is not None and reply.haslayer(ICMP) and reply[ICMP].type == 0:
            replies += 1
    return replies > 0

class NetworkStateManager:
    """Backup and restoration of one interface's network state"""

    def __init__(self, interface, backup_dir=None, runner=run_command, sleep=time.sleep,
                 prober=ping_gateway, which=command_exists,
                 interfaces_file=None, netplan_dir=None):
        self.interface = interface
        self.backup_dir = backup_dir or PathConfig.BACKUP_DIR
        self.runner = runner
        self.sleep = sleep
        self.prober = prober
        self.which = which
        self.interfaces_file = interfaces_file or NetworkConfig.INTERFACES_FILE
        self.netplan_dir = netplan_dir or NetworkConfig.NETPLAN_DIR

        self.addr_file = PathConfig.addr_backup(interface, self.backup_dir)
        self.route_file = PathConfig.route_backup(interface, self.backup_dir)
        self.lock_path = PathConfig.lock_file(interface, self.backup_dir)

    @contextmanager
    def locked(self):
        """Hold the per-interface backup lock; raise LockError if another run has it"""
        os.makedirs(self.backup_dir, exist_ok=True)
        with open(self.lock_path, 'a') as lock:
            try:
                fcntl.flock(lock, fcntl.LOCK_EX | fcntl.LOCK_NB)
            except BlockingIOError as e:
                raise LockError(
                    f"Another simdown run is already using {self.interface} ({self.lock_path})"
                ) from e
            lock.truncate(0)
            lock.write(f"{os.getpid()}\n")
            lock.flush()
            try:
                yield
            finally:
                fcntl.flock(lock, fcntl.LOCK_UN)

    # ------------------------------------------------------------------
    # Backup
    # ------------------------------------------------------------------

    def backup(self):
        """Save the interface addresses and the routing table to disk"""
        os.makedirs(self.backup_dir, exist_ok=True)
        snapshot = NetworkSnapshot(self.interface, self.addr_file, self.route_file)

        snapshot.addr_dump = self._capture(['ip', 'addr', 'show', self.interface],
                                           self.addr_file, snapshot.errors)
        snapshot.route_dump = self._capture(['ip', 'route', 'show'],
                                            self.route_file, snapshot.errors)

        if snapshot.ok:
            logger.info(f"Network backup saved to {self.backup_dir}/")
        else:
            for error in snapshot.errors:
                logger.warning(f"[BACKUP] {error}")
            logger.warning(f"[BACKUP] Backup of {self.interface} is incomplete, "
                           "manual restoration will be skipped")
        return snapshot

    def _capture(self, cmd, path, errors):
        try:
            result = self.runner(cmd)
        except CommandError as e:
            errors.append(str(e))
            return ""

        if result.returncode != 0:
            errors.append(f"'{' '.join(cmd)}' exited with {result.returncode}: {result.stderr.strip()}")

        try:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(result.stdout)
        except OSError as e:
            errors.append(f"Cannot write {path}: {e}")
        return result.stdout

    def load_snapshot(self):
        return NetworkSnapshot.from_files(self.interface, self.addr_file, self.route_file)

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def has_ifupdown_stanza(self):
        """Check /etc/network/interfaces for an `iface NAME` stanza"""
        try:
            with open(self.interfaces_file, 'r') as f:
                content = f.read()
        except OSError:
            return False
        pattern = rf'^\s*iface\s+{re.escape(self.interface)}(\s|$)'
        return re.search(pattern, content, re.MULTILINE) is not None

    def has_netplan_config(self):
        return bool(glob.glob(os.path.join(self.netplan_dir, '*.yaml')))

    def select_strategy(self):
        """Pick the restoration strategy available on this host"""
        if self.which('ifdown') and self.which('ifup') and self.has_ifupdown_stanza():
            return STRATEGY_IFUPDOWN
        if self.which('netplan') and self.has_netplan_config():
            return STRATEGY_NETPLAN
        return STRATEGY_MANUAL

    def restore(self, snapshot=None):
        """Reapply network configuration, then probe the backed-up gateway"""
        if snapshot is None:
            snapshot = self.load_snapshot()

        logger.info(f"Restoring network configuration of {self.interface}...")
        strategy = self.select_strategy()

        try:
            if strategy == STRATEGY_IFUPDOWN:
                success = self._restore_ifupdown()
            elif strategy == STRATEGY_NETPLAN:
                success = self._restore_netplan()
            else:
                success = self._restore_manual(snapshot)
                if success is None:
                    strategy, success = STRATEGY_SKIPPED, False
        except CommandError as e:
            logger.error(f"[RESTORE] {strategy} restoration failed: {e}")
            success = False

        result = RestoreResult(strategy=strategy, success=success)

        self.sleep(TimingConfig.RESTORE_SETTLE_DELAY)
        self.verify_gateway(snapshot, result)
        return result

    def _restore_ifupdown(self):
        logger.info(f"Using ifdown/ifup to restore interface {self.interface}")
        result = self.runner(['ifdown', self.interface])
        if result.returncode != 0:
            logger.debug(f"ifdown {self.interface} exited with {result.returncode}, continuing")
        self.sleep(TimingConfig.LINK_SETTLE_DELAY)
        self.runner(['ifup', self.interface], check=True)
        return True

    def _restore_netplan(self):
        logger.info("Using netplan apply to restore configuration (all interfaces)")
        self.runner(['netplan', 'apply'], check=True)
        return True

    def _restore_manual(self, snapshot):
        """
        Replay the backup; returns None when there is no usable backup.

        Any address, or any route on this interface, that cannot be added makes
        the replay unsuccessful. Routes through other devices were never
        flushed, so failing to re-add them is only logged.
        """
        if not snapshot.ok:
            logger.error(f"[RESTORE] No valid backup for {self.interface}, "
                         "skipping manual IP and route replay")
            return None

        logger.info("Manual restoration of IP addresses and routes from backup...")
        success = True
        self.runner(['ip', 'addr', 'flush', 'dev', self.interface], check=True)
        for cidr in snapshot.addresses():
            result = self.runner(['ip', 'addr', 'add', cidr, 'dev', self.interface])
            if not self._report_replay(result, f"address {cidr}"):
                success = False

        self.runner(['ip', 'route', 'flush', 'dev', self.interface], check=True)
        own_device = ['dev', self.interface]
        for route in snapshot.routes():
            parts = route.split()
            result = self.runner(['ip', 'route', 'add'] + parts)
            added = self._report_replay(result, f"route '{route}'")
            if not added and self._mentions(parts, own_device):
                success = False

        if not success:
            logger.error(f"[RESTORE] Manual replay left {self.interface} incomplete")
        return success

    @staticmethod
    def _mentions(parts, pair):
        return any(parts[i:i + 2] == pair for i in range(len(parts) - 1))

    def _report_replay(self, result, what):
        """True when the entry is in place afterwards"""
        if result.returncode == 0:
            logger.debug(f"[RESTORE] Added {what}")
            return True
        if 'File exists' in result.stderr:
            logger.debug(f"[RESTORE] {what} already present")
            return True
        logger.warning(f"[RESTORE] Could not add {what}: {result.stderr.strip()}")
        return False

    def verify_gateway(self, snapshot, result):
        """Advisory reachability check of the gateway recorded in the backup"""
        logger.info("Verifying connectivity with gateway...")
        gateway = snapshot.default_gateway()
        result.gateway = gateway

        if not gateway:
            logger.info("[INFO] No default route found in backup, gateway check skipped.")
            return None

        result.gateway_reachable = self.prober(gateway)
        if result.gateway_reachable:
            logger.info(f"✅ Gateway {gateway} reachable after restoration.")
        else:
            logger.error(f"❌ Cannot reach gateway {gateway} after restoration.")
        return result.gateway_reachable
