"""
Storage-independent domain value objects.
"""
