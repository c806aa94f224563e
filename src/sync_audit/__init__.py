"""
Search index sync audit.

Detects drift between a CMS primary store and its search index, reports
it, and repairs it by forcing re-synchronization.
"""

__version__ = "0.1.0"
