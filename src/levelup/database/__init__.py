"""
ORM table definitions for LevelUp.
"""
