"""Habit record store backed by a Google Sheets spreadsheet."""
from __future__ import annotations

__version__ = "0.1.0"
