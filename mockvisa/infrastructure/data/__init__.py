"""
Data management infrastructure for interview sessions and reports.
"""

from .store import SessionStore

__all__ = [
    'SessionStore'
]
