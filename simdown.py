#!/usr/bin/env python3
"""
Simdown - Network Blackout Simulator
Takes a network interface down for a while to simulate a server outage,
then brings it back and restores its addresses and routes.

Usage:
    sudo python3 simdown.py [-i interface] [-t seconds] [--preview] [--log file] [--email address]

Examples:
    sudo python3 simdown.py --preview -t 30          # Show what would happen
    sudo python3 simdown.py -i eth0 -t 5 --no-email  # 5 second blackout on eth0
"""

import argparse
import logging
import os
import sys
import time
from enum import Enum

from colorama import Fore, Style, init

from config import (
    BlackoutSettings, EmailConfig, PathConfig, TimingConfig,
    display_configuration, validate_settings,
)
from common.errors import CommandError, LockError
from common.iface import detect_default_interface, set_link_state
from common.netstate import NetworkStateManager, STRATEGY_IFUPDOWN, STRATEGY_NETPLAN
from common.notifier import EmailNotifier, blackout_end_message, blackout_start_message
from common.utils import (
    print_error, print_info, print_section_header, print_success, print_warning,
    run_command, setup_logging,
)

logger = logging.getLogger("simdown")

class BlackoutOutcome(Enum):
    """How a simdown invocation ended"""
    COMPLETED = "completed"
    PREVIEW = "preview"
    NO_INTERFACE = "no_interface"
    LINK_DOWN_FAILED = "link_down_failed"
    LINK_UP_FAILED = "link_up_failed"
    INTERRUPTED = "interrupted"

EXIT_CODES = {
    BlackoutOutcome.COMPLETED: 0,
    BlackoutOutcome.PREVIEW: 0,
    BlackoutOutcome.NO_INTERFACE: 1,
    BlackoutOutcome.LINK_DOWN_FAILED: 1,
    BlackoutOutcome.LINK_UP_FAILED: 1,
    BlackoutOutcome.INTERRUPTED: 130,
}

# ==========================================
# ARGUMENT PARSING
# ==========================================

def non_negative_int(value):
    try:
        seconds = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number of seconds: {value!r}")
    if seconds < 0:
        raise argparse.ArgumentTypeError(f"duration must be >= 0, got {seconds}")
    return seconds

def build_parser():
    parser = argparse.ArgumentParser(
        prog="simdown",
        allow_abbrev=False,
        description="Simulate a server outage by disconnecting a network interface temporarily",
    )
    parser.add_argument("-i", "--interface", default="",
                        help="Network interface name (e.g. eth0, ens33). Auto-detected if omitted")
    parser.add_argument("-t", "--time", dest="duration", type=non_negative_int,
                        default=TimingConfig.DEFAULT_DURATION, metavar="SECONDS",
                        help=f"Blackout duration in seconds (default {TimingConfig.DEFAULT_DURATION})")
    parser.add_argument("--log", dest="log_file", default=PathConfig.LOG_FILE, metavar="FILE",
                        help=f"Log file (default {PathConfig.LOG_FILE})")
    parser.add_argument("--email", dest="email_to", default=EmailConfig.EMAIL_TO, metavar="ADDRESS",
                        help="Email address for notices")
    parser.add_argument("--email-from", dest="email_from", default=EmailConfig.EMAIL_FROM,
                        metavar="ADDRESS", help="Sender address for notices")
    parser.add_argument("--subject", dest="email_subject", default=EmailConfig.EMAIL_SUBJECT,
                        help="Subject line for notices")
    parser.add_argument("--no-email", dest="send_email", action="store_false",
                        help="Do not send email notices")
    parser.add_argument("--preview", action="store_true",
                        help="Show what would be done without doing it")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Log external commands and debug details")
    return parser

def parse_args(argv=None):
    """Parse command line flags into BlackoutSettings"""
    args = build_parser().parse_args(argv)
    return BlackoutSettings(
        interface=args.interface,
        duration=args.duration,
        log_file=args.log_file,
        preview=args.preview,
        send_email=args.send_email,
        email_to=args.email_to,
        email_from=args.email_from,
        email_subject=args.email_subject,
        verbose=args.verbose,
    )

# ==========================================
# ORCHESTRATION
# ==========================================

class BlackoutRunner:
    """Runs the notify, backup, down, wait, up, restore sequence"""

    def __init__(self, settings, manager=None, notifier=None, runner=run_command, sleep=time.sleep):
        self.settings = settings
        self.interface = settings.interface
        self.runner = runner
        self.sleep = sleep
        self.manager = manager or NetworkStateManager(self.interface, runner=runner, sleep=sleep)
        self.notifier = notifier or EmailNotifier(settings, runner=runner)

    def preview(self):
        """Print the configuration and the planned actions without running them"""
        s = self.settings
        print_section_header("PREVIEW MODE", color=Fore.YELLOW)
        display_configuration(s)

        strategy = self.manager.select_strategy()
        if strategy == STRATEGY_IFUPDOWN:
            restore_plan = [f"ifdown {s.interface}", "sleep 2", f"ifup {s.interface}"]
        elif strategy == STRATEGY_NETPLAN:
            restore_plan = ["netplan apply  (all interfaces)"]
        else:
            restore_plan = [f"ip addr flush dev {s.interface}",
                            f"ip addr add <backed-up address> dev {s.interface}",
                            f"ip route flush dev {s.interface}",
                            "ip route add <backed-up route>"]

        print(f"\n{Fore.CYAN}Commands that would be run:{Style.RESET_ALL}")
        if s.send_email:
            print(f"  mail -s '{s.email_subject}' -r {s.email_from} {s.email_to}")
        print(f"  sleep {TimingConfig.MAIL_DELIVERY_WAIT}")
        print(f"  ip addr show {s.interface} > {self.manager.addr_file}")
        print(f"  ip route show > {self.manager.route_file}")
        print(f"  ip link set {s.interface} down")
        print(f"  sleep {s.duration}")
        print(f"  ip link set {s.interface} up")
        print(f"  Restore IP and routes ({strategy}):")
        for step in restore_plan:
            print(f"    {step}")
        print("  Verify gateway from backup")
        print_info("Preview only, no network changes were made")
        return BlackoutOutcome.PREVIEW

    def run(self):
        """Execute the blackout; returns a BlackoutOutcome"""
        iface = self.interface
        duration = self.settings.duration

        logger.info(f"Simulating network blackout on interface {iface} for {duration} seconds")
        try:
            self.notifier.notify(blackout_start_message(iface, duration))
            logger.info(f"Waiting {TimingConfig.MAIL_DELIVERY_WAIT} seconds to ensure email delivery...")
            self.sleep(TimingConfig.MAIL_DELIVERY_WAIT)
            snapshot = self.manager.backup()
        except KeyboardInterrupt:
            logger.warning("Interrupted before the interface was touched")
            return BlackoutOutcome.INTERRUPTED

        try:
            set_link_state(iface, 'down', runner=self.runner)
        except CommandError as e:
            logger.error(f"ERROR bringing down interface {iface}: {e}")
            return BlackoutOutcome.LINK_DOWN_FAILED

        try:
            logger.info(f"Interface {iface} disabled. Waiting {duration} seconds...")
            self.sleep(duration)
        except KeyboardInterrupt:
            logger.warning(f"Interrupted while {iface} is down, bringing it back up")
            if not self.bring_up():
                return BlackoutOutcome.LINK_UP_FAILED
            self.sleep(TimingConfig.LINK_SETTLE_DELAY)
            self.manager.restore(snapshot)
            return BlackoutOutcome.INTERRUPTED

        logger.info(f"Re-enabling interface {iface}")
        if not self.bring_up():
            return BlackoutOutcome.LINK_UP_FAILED
        self.sleep(TimingConfig.LINK_SETTLE_DELAY)

        restored = self.manager.restore(snapshot)
        self.notifier.notify(blackout_end_message(iface, restored=restored.success))
        logger.info("Process completed successfully.")
        return BlackoutOutcome.COMPLETED

    def bring_up(self):
        """Set the link up, retrying before giving up"""
        attempts = 1 + TimingConfig.LINK_UP_RETRIES
        for attempt in range(1, attempts + 1):
            try:
                set_link_state(self.interface, 'up', runner=self.runner)
                return True
            except CommandError as e:
                logger.error(f"ERROR bringing up interface {self.interface} "
                             f"(attempt {attempt}/{attempts}): {e}")
                if attempt < attempts:
                    self.sleep(TimingConfig.LINK_SETTLE_DELAY)

        logger.critical(f"Interface {self.interface} is still DOWN. Manual intervention required: "
                        f"ip link set {self.interface} up")
        return False

# ==========================================
# ENTRY POINT
# ==========================================

def resolve_interface(settings):
    """Fill in the outbound interface when none was given; None if undetectable"""
    if settings.interface:
        return settings
    iface = detect_default_interface()
    if not iface:
        return None
    logger.info(f"Interface auto-detected: {iface}")
    return settings.with_interface(iface)

def main(argv=None):
    """Main function orchestrating the blackout workflow"""
    init(autoreset=True)
    settings = parse_args(argv)
    setup_logging(settings.log_file, settings.verbose)

    try:
        resolved = resolve_interface(settings)
        if resolved is None:
            print_error("Could not detect the active interface. Use -i to specify it.")
            return EXIT_CODES[BlackoutOutcome.NO_INTERFACE]
        settings = resolved

        errors, warnings = validate_settings(settings)
        for warning in warnings:
            logger.warning(warning)
        if errors:
            for error in errors:
                print_error(error)
            return 1

        manager = NetworkStateManager(settings.interface)
        blackout = BlackoutRunner(settings, manager=manager)

        if settings.preview:
            return EXIT_CODES[blackout.preview()]

        if os.geteuid() != 0:
            print_warning("Not running as root: link and route changes will likely fail")
            print_warning("Run with sudo for full functionality")

        with manager.locked():
            outcome = blackout.run()

    except LockError as e:
        print_error(str(e))
        return 1
    except KeyboardInterrupt:
        print(f"\n{Fore.YELLOW}🛑 Program interrupted by user{Style.RESET_ALL}")
        return EXIT_CODES[BlackoutOutcome.INTERRUPTED]
    except Exception as e:
        logger.exception("Unexpected error")
        print_error(f"Unexpected error: {e}")
        return 1

    if outcome is BlackoutOutcome.COMPLETED:
        print_success("Blackout simulation finished")
    return EXIT_CODES[outcome]

if __name__ == "__main__":
    sys.exit(main())
