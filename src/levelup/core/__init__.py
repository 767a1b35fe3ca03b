"""
Core infrastructure: configuration, logging, database, events, redis, validation.
"""
