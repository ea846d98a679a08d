"""Manage Linux cgroup v2 hierarchies, resource limits, statistics and device rules."""

__version__ = "0.0.1"