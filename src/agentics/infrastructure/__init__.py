"""
agentics.infrastructure - Storage Layer
=========================================

    - blackboard:      Blackboard ABC + InMemoryBlackboard
    - sql_blackboard:  SQLBlackboard (async SQLAlchemy, Postgres/SQLite)
    - db:              ORM tables and engine helpers
    - factory:         create_blackboard(config), the one backend switch
"""

from agentics.infrastructure.blackboard import Blackboard, InMemoryBlackboard
from agentics.infrastructure.factory import create_blackboard

__all__ = [
    "Blackboard",
    "InMemoryBlackboard",
    "create_blackboard",
]
