"""
Attempts module: quiz/challenge attempts and their keyed XP awards.
"""

from levelup.modules.attempts.service import AttemptService, score_answers

__all__ = ["AttemptService", "score_answers"]
