"""
Shared fixtures: fake command runners so no test touches the host network
"""

import logging
import subprocess

import pytest

from common.errors import CommandError


class FakeRunner:
    """Records commands and answers them from canned responses keyed by prefix"""

    def __init__(self):
        self.calls = []
        self.inputs = []
        self.responses = {}

    def set(self, prefix, returncode=0, stdout="", stderr=""):
        self.responses[tuple(prefix)] = (returncode, stdout, stderr)

    def _lookup(self, cmd):
        best = None
        for prefix, response in self.responses.items():
            if tuple(cmd[:len(prefix)]) == prefix and (best is None or len(prefix) > len(best[0])):
                best = (prefix, response)
        return best[1] if best else (0, "", "")

    def __call__(self, cmd, check=False, input_text=None):
        self.calls.append(list(cmd))
        self.inputs.append(input_text)
        returncode, stdout, stderr = self._lookup(cmd)
        if check and returncode != 0:
            raise CommandError(cmd, returncode, stderr)
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

    def called(self, *prefix):
        return [c for c in self.calls if tuple(c[:len(prefix)]) == prefix]


class FakeIproute(FakeRunner):
    """
    Minimal model of one interface for `ip addr` / `ip route` / `ip link`.
    Anything else falls back to FakeRunner canned responses.
    """

    def __init__(self, interface, addresses, routes):
        super().__init__()
        self.interface = interface
        self.addresses = list(addresses)
        self.routes = list(routes)
        self.link_up = True
        self.fail_link = set()

    def render_addr(self):
        lines = [f"2: {self.interface}: <BROADCAST,MULTICAST,UP,LOWER_UP> mtu 1500 qdisc fq_codel state UP group default qlen 1000",
                 "    link/ether 52:54:00:12:34:56 brd ff:ff:ff:ff:ff:ff"]
        for cidr in self.addresses:
            lines.append(f"    inet {cidr} scope global {self.interface}")
            lines.append("       valid_lft forever preferred_lft forever")
        lines.append("    inet6 fe80::5054:ff:fe12:3456/64 scope link")
        lines.append("       valid_lft forever preferred_lft forever")
        return "\n".join(lines) + "\n"

    def __call__(self, cmd, check=False, input_text=None):
        if cmd[:1] != ['ip']:
            return super().__call__(cmd, check=check, input_text=input_text)

        self.calls.append(list(cmd))
        self.inputs.append(input_text)
        returncode, stdout, stderr = 0, "", ""
        args = cmd[1:]

        if args[:2] == ['addr', 'show']:
            stdout = self.render_addr()
        elif args[:2] == ['route', 'show']:
            stdout = "".join(f"{r}\n" for r in self.routes)
        elif args[:2] == ['route', 'get']:
            stdout = f"{args[2]} via 10.0.0.1 dev {self.interface} src 10.0.0.5 uid 0\n    cache\n"
        elif args[:3] == ['addr', 'flush', 'dev']:
            self.addresses = []
        elif args[:2] == ['addr', 'add']:
            if args[2] in self.addresses:
                returncode, stderr = 2, "RTNETLINK answers: File exists\n"
            else:
                self.addresses.append(args[2])
        elif args[:3] == ['route', 'flush', 'dev']:
            self.routes = [r for r in self.routes if f"dev {args[3]}" not in r]
        elif args[:2] == ['route', 'add']:
            route = " ".join(args[2:])
            if route in self.routes:
                returncode, stderr = 2, "RTNETLINK answers: File exists\n"
            else:
                self.routes.append(route)
        elif args[:2] == ['link', 'set']:
            state = args[3]
            if state in self.fail_link:
                returncode, stderr = 2, "RTNETLINK answers: Operation not permitted\n"
            else:
                self.link_up = state == 'up'

        if check and returncode != 0:
            raise CommandError(cmd, returncode, stderr)
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)


class SleepRecorder:
    def __init__(self, interrupt_on=None):
        self.calls = []
        self.interrupt_on = interrupt_on

    def __call__(self, seconds):
        self.calls.append(seconds)
        if self.interrupt_on is not None and seconds == self.interrupt_on:
            raise KeyboardInterrupt


class ProbeRecorder:
    def __init__(self, reachable=True):
        self.reachable = reachable
        self.targets = []

    def __call__(self, gateway):
        self.targets.append(gateway)
        return self.reachable


ETH0_ROUTES = [
    "default via 10.0.0.1 dev eth0 proto static",
    "10.0.0.0/24 dev eth0 proto kernel scope link src 10.0.0.5",
    "192.168.50.0/24 via 10.0.0.254 dev eth0",
]


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def iproute():
    return FakeIproute("eth0", ["10.0.0.5/24"], ETH0_ROUTES)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def prober():
    return ProbeRecorder()


@pytest.fixture(autouse=True)
def restore_root_logging():
    root = logging.getLogger()
    before, level = set(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in before and not type(handler).__module__.startswith("_pytest"):
            root.removeHandler(handler)
            handler.close()
    root.setLevel(level)
