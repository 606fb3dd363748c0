"""Append-only merge audit trail."""

from .tracker import MergeHistoryTracker, parse_history_records

__all__ = ["MergeHistoryTracker", "parse_history_records"]
