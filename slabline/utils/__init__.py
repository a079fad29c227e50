"""Utility functions."""

from slabline.utils.audit import get_client_ip, log_action

__all__ = [
    "get_client_ip",
    "log_action",
]
