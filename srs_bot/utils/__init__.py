"""Utility modules for the review bot."""

from . import task_tracker

__all__ = ["task_tracker"]
