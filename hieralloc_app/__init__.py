"""Allocation table front-end package.

The tkinter application lives in :mod:`hieralloc_app.app`; it is not imported
here so the table helpers stay usable without a display.
"""
from .table import DisplayRow, build_display_rows, format_amount, format_variance_label

__all__ = [
    "DisplayRow",
    "build_display_rows",
    "format_amount",
    "format_variance_label",
]
