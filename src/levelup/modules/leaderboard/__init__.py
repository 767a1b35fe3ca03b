"""
Leaderboard module: learner ranking by lifetime XP.
"""

from levelup.modules.leaderboard.service import LeaderboardEntry, LeaderboardService

__all__ = ["LeaderboardEntry", "LeaderboardService"]
