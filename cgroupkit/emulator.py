"""Reduce a list of device rules to the rules a device program enforces.

Rules are added one by one. A rule of type ``a`` discards all earlier rules
and switches the default to allow or deny everything, following its
``allow`` flag. A rule without access matches nothing and is dropped. The
program built from the rules checks them in reverse order and returns the
verdict of the first rule that matches.
"""

from __future__ import annotations

import dataclasses
from typing import Iterable

from cgroupkit.resources import LinuxDeviceCgroup, LinuxDeviceType


class Emulator:
    """Collects device rules on top of a default verdict."""

    def __init__(self, default_allow: bool) -> None:
        self.default_allow = default_allow
        self.rules: list[LinuxDeviceCgroup] = []

    def add_rules(self, rules: Iterable[LinuxDeviceCgroup]) -> None:
        """Add each rule in turn."""
        for rule in rules:
            self.add_rule(rule)

    def add_rule(self, rule: LinuxDeviceCgroup) -> None:
        """Add one rule, handling the wildcard type and empty access."""
        # Other fields of a wildcard rule are ignored, as cgroup v1 does.
        if (rule.typ or LinuxDeviceType.A) is LinuxDeviceType.A:
            self.default_allow = rule.allow
            self.rules.clear()
            return

        if rule.access is None:
            return

        self.rules.append(dataclasses.replace(rule))