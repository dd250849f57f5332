"""
Base Repository

Abstract base class for the repositories. Repositories never commit on
their own; the service that opened the session decides the transaction
boundary and calls commit() or rollback().
"""

from abc import ABC, abstractmethod
from typing import TypeVar, Generic, Optional
from sqlalchemy.orm import Session

T = TypeVar('T')


class BaseRepository(ABC, Generic[T]):
    """
    Abstract base repository

    Generic[T]: T là domain model type (Account, GenerationTask, Artifact)
    """

    def __init__(self, session: Session):
        """
        Args:
            session: SQLAlchemy session
        """
        self.session = session

    @abstractmethod
    async def get_by_id(self, id: int) -> Optional[T]:
        """
        Lấy entity theo ID

        Returns:
            Domain model or None if not found
        """
        pass

    def commit(self):
        """Commit transaction"""
        self.session.commit()

    def rollback(self):
        """Rollback transaction"""
        self.session.rollback()

    def flush(self):
        """
        Flush changes to database without committing

        Useful to get auto-generated IDs
        """
        self.session.flush()
