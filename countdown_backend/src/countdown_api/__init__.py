"""
Countdown backend package.

Time-remaining engine (natural and working-hours time), countdown storage
backends behind one store contract, and the FastAPI application wrapping them.
"""

from .time_engine import TimeRemaining, compute_remaining  # noqa: F401
