"""Engine package exposing analysis and sync components."""

from . import clock, compare, executor, git_compare, planner, service, snapshot

__all__ = ["clock", "compare", "executor", "git_compare", "planner", "service", "snapshot"]
