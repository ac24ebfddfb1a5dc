"""Shared helpers for kube-transport-bench."""

from kb_common.errors import KBError
from kb_common.logging import configure_logging

__all__ = ["configure_logging", "KBError"]
