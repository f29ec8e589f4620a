"""
System-under-test integrations for trace replay
"""

from .lockup_chain import LockupChain

__all__ = [
    "LockupChain",
]
