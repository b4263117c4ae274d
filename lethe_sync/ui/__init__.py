"""
Terminal output for the sync app.
"""

from .colors import Colors
from .progress_display import ConsoleProgress, print_summary

__all__ = [
    "Colors",
    "ConsoleProgress",
    "print_summary",
]
