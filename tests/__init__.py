"""
LevelUp Progression Test Suite
==============================

Test Organization
-----------------
- tests/unit/          : Fast unit tests on in-memory fakes (no external dependencies)
- tests/integration/   : Tests against a real SQLite database through aiosqlite
- tests/fakes.py       : In-memory implementations of the progression ports

Testing Philosophy
------------------
- Unit tests: fast, isolated, test business logic
- Integration tests: slower, test real persistence interactions
- Use pytest markers to categorize and selectively run tests
- Follow AAA pattern: Arrange, Act, Assert
"""
