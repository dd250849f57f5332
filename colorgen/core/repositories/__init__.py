"""
Repository Pattern Implementation

Services and workers depend on these classes; SQLAlchemy stays behind them.
Each repository wraps one session and never commits on its own.
"""

from .base import BaseRepository
from .account_repo import AccountRepository
from .artifact_repo import ArtifactRepository
from .task_repo import TaskRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "ArtifactRepository",
    "TaskRepository"
]
