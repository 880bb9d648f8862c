#!/usr/bin/env python3
"""
Common utility functions for the network blackout simulator
"""

import logging
import os
import shutil
import subprocess
import sys

from colorama import Fore, Style

from .errors import CommandError

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)

def print_section_header(title, color=Fore.CYAN):
    """Print a formatted section header"""
    print(f"\n{color}{'═' * 60}")
    print(f"  {title}")
    print(f"{'═' * 60}{Style.RESET_ALL}")

def print_error(message):
    """Print an error message"""
    print(f"{Fore.RED}❌ {message}{Style.RESET_ALL}", file=sys.stderr)

def print_success(message):
    """Print a success message"""
    print(f"{Fore.GREEN}✅ {message}{Style.RESET_ALL}")

def print_warning(message):
    """Print a warning message"""
    print(f"{Fore.YELLOW}⚠️  {message}{Style.RESET_ALL}")

def print_info(message):
    """Print an info message"""
    print(f"{Fore.CYAN}ℹ️  {message}{Style.RESET_ALL}")

def setup_logging(log_file, verbose=False):
    """
    Send log records to stdout and append them to log_file.
    Falls back to console-only logging when the file cannot be opened.
    """
    handlers = []
    try:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        handlers.append(logging.FileHandler(log_file, mode='a', encoding='utf-8'))
    except OSError as e:
        print_warning(f"Unable to open log file {log_file}: {e}")

    handlers.append(logging.StreamHandler(sys.stdout))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=handlers,
        force=True,
    )
    return logging.getLogger("simdown")

def command_exists(name):
    """Check whether an executable is available on PATH"""
    return shutil.which(name) is not None

def run_command(cmd, check=False, input_text=None):
    """
    Run an external command and capture its output.

    With check=True a non-zero exit raises CommandError carrying the
    command, return code and stderr. A missing executable always raises
    CommandError with return code 127.
    """
    logger.debug(f"[CMD] {' '.join(cmd)}")
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, input=input_text)
    except OSError as e:
        raise CommandError(cmd, 127, str(e)) from e

    if check and result.returncode != 0:
        raise CommandError(cmd, result.returncode, result.stderr)
    return result
