"""Utility functions for grouptrack."""

from grouptrack.utils.date_parser import parse_date
from grouptrack.utils.amount_parser import parse_amount
from grouptrack.utils.clock import Clock, FixedClock

__all__ = ["parse_date", "parse_amount", "Clock", "FixedClock"]
