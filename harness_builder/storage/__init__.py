"""Scratch storage for intermediate build files."""

from .scratch import ScratchSpace, pending_removals, schedule_removal_on_exit

__all__ = ["ScratchSpace", "pending_removals", "schedule_removal_on_exit"]
