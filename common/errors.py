#!/usr/bin/env python3
"""
Exceptions raised by the blackout simulator components
"""


class SimdownError(Exception):
    """Base class for simulator failures"""


class CommandError(SimdownError):
    """An external command failed"""

    def __init__(self, cmd, returncode, stderr=""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = (stderr or "").strip()
        message = f"'{' '.join(self.cmd)}' exited with {returncode}"
        if self.stderr:
            message += f": {self.stderr}"
        super().__init__(message)


class LockError(SimdownError):
    """Another run holds the backup lock for the interface"""
