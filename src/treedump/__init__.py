"""Directory tree scanning with a persisted per-directory file selection."""

from treedump.matcher import parse_ignore_patterns, should_ignore
from treedump.models import PersistResult, ScanResult, SelectionRecord, TreeNode
from treedump.scanner import persist, scan

__version__ = "0.1.0"

__all__ = [
    "PersistResult",
    "ScanResult",
    "SelectionRecord",
    "TreeNode",
    "parse_ignore_patterns",
    "persist",
    "scan",
    "should_ignore",
]
