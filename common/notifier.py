#!/usr/bin/env python3
"""
Email notifications through the local `mail` command

Delivery depends on a working local MTA (Postfix, Exim...) and on the
sender address being accepted by it. When `mail` is not installed the
notice is skipped and the run continues.
"""

import logging
import socket
from datetime import datetime

from config import EmailConfig
from .errors import CommandError
from .utils import command_exists, run_command

logger = logging.getLogger(__name__)

def blackout_start_message(interface, duration, hostname=None, now=None):
    hostname = hostname or socket.gethostname()
    now = now or datetime.now()
    return (f"⚠️ Server {hostname} is starting a network blackout\n\n"
            f"Interface: {interface}\n"
            f"Duration: {duration} seconds\n"
            f"Date and time: {now:%a %d %b %Y %H:%M:%S}")

def blackout_end_message(interface, hostname=None, now=None, restored=True):
    hostname = hostname or socket.gethostname()
    now = now or datetime.now()
    headline = (f"✅ Network blackout finished successfully on {hostname}" if restored
                else f"⚠️ Network blackout finished on {hostname}, restoration reported errors")
    return (f"{headline}\n\n"
            f"Interface: {interface}\n"
            f"Date and time: {now:%a %d %b %Y %H:%M:%S}")

class EmailNotifier:
    """Sends operator notices when email is enabled"""

    def __init__(self, settings, runner=run_command, which=command_exists):
        self.enabled = settings.send_email
        self.email_to = settings.email_to
        self.email_from = settings.email_from
        self.subject = settings.email_subject
        self.runner = runner
        self.which = which

    def notify(self, message):
        """Send message; returns True if the mail command accepted it"""
        if not self.enabled:
            return False

        if not self.which(EmailConfig.MAIL_COMMAND):
            logger.info(f"[INFO] Command '{EmailConfig.MAIL_COMMAND}' not available, no email will be sent.")
            return False

        cmd = [EmailConfig.MAIL_COMMAND, '-s', self.subject, '-r', self.email_from, self.email_to]
        try:
            result = self.runner(cmd, input_text=message + "\n")
        except CommandError as e:
            logger.warning(f"[WARN] Could not send email: {e}")
            return False

        if result.returncode != 0:
            logger.warning(f"[WARN] Could not send email: {result.stderr.strip() or result.returncode}")
            return False

        logger.info(f"Notification sent to {self.email_to}")
        return True
