"""
Domain modules: progression, attempts, leaderboard, and shared service bases.
"""
