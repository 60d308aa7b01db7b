"""
dnsentinel — Offline DNS log communication-activity analyzer.
"""

__version__ = '1.0.0'
