"""
LevelUp progression engine.

XP curve, level reconciliation, idempotent XP awards and badge claims for an
e-learning platform, with async SQL persistence and event notifications.
"""

__version__ = "1.0.0"
