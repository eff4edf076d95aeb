"""Async helpers shared by lifecycle tests."""

from .waiting import wait_for, settle

__all__ = ["wait_for", "settle"]
