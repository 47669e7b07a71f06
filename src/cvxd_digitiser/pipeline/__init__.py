"""
Pipeline Module
===============

Event-level digitisation.

Components:
    - TickGraph: LangGraph tick cycle of one sensor
    - VertexDigitizer: Sensors of the whole barrel, event in, hits out
"""

from cvxd_digitiser.pipeline.graph import PixelDeposit, TickGraph, TickGraphState
from cvxd_digitiser.pipeline.digitizer import EventResult, VertexDigitizer


__all__ = [
    "PixelDeposit",
    "TickGraph",
    "TickGraphState",
    "EventResult",
    "VertexDigitizer",
]
