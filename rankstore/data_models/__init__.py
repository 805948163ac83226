"""
Data models for the rank store.
"""

from .entry import Entry, Identity, Score, SetResult

__all__ = ['Entry', 'Identity', 'Score', 'SetResult']
