"""
Typed model-checker traces (ITF JSON)
"""

from .model import (
    ExplicitArgs,
    FlagOutcome,
    LockupRecord,
    ModelState,
    Picks,
    ResultOutcome,
    Step,
    Trace,
    TraceVariant,
)
from .decode import decode_trace, load_trace_file, parse_trace

__all__ = [
    "ExplicitArgs",
    "FlagOutcome",
    "LockupRecord",
    "ModelState",
    "Picks",
    "ResultOutcome",
    "Step",
    "Trace",
    "TraceVariant",
    "decode_trace",
    "load_trace_file",
    "parse_trace",
]
