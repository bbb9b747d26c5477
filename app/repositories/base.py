"""
Base repository class for data access layer.

The repository pattern provides:
1. Separation of data access logic from sync/query logic
2. Single place for query logic
3. Easier testing (repositories wrap a plain Session)

Example:
    class GameSnapshotRepository(BaseRepository[GameSnapshot]):
        def list_live(self) -> List[GameSnapshot]:
            return self.where(GameSnapshot.status == LifecycleState.ACTIVE.value)
"""
from abc import ABC
from typing import TypeVar, Generic, Type, Optional, List, Any, Dict

from sqlalchemy import desc, func, inspect
from sqlalchemy.orm import Query, Session

T = TypeVar("T")


class BaseRepository(Generic[T], ABC):
    """
    Common data access methods shared by the snapshot store and the event log.

    Attributes:
        model_type: The SQLAlchemy model class this repository manages
        db: The database session
    """

    def __init__(self, model_type: Type[T], db: Session):
        self.model_type = model_type
        self.db = db
        self._pk = inspect(model_type).primary_key[0]

    # ========================================================================
    # Lookups
    # ========================================================================

    def find_by_id(self, id: Any) -> Optional[T]:
        """Find a single record by primary key."""
        return self.db.get(self.model_type, id)

    def query(self) -> Query:
        """Get a new query object for this model."""
        return self.db.query(self.model_type)

    def where(self, *criterion, order_by=None, limit: Optional[int] = None) -> List[T]:
        """Filter records using SQLAlchemy expressions."""
        query = self.db.query(self.model_type).filter(*criterion)
        if order_by is not None:
            query = query.order_by(*order_by) if isinstance(order_by, (list, tuple)) else query.order_by(order_by)
        if limit is not None:
            query = query.limit(limit)
        return query.all()

    # ========================================================================
    # Aggregation
    # ========================================================================

    def count(self, *criterion) -> int:
        """Count records matching optional criterion."""
        query = self.db.query(func.count(self._pk))
        if criterion:
            query = query.filter(*criterion)
        return query.scalar() or 0

    def group_by_and_count(self, group_field: str, *criterion) -> Dict[Any, int]:
        """
        Group by a column and count records in each group.

        Returns:
            Mapping of group value to count, largest groups first
        """
        column = getattr(self.model_type, group_field)
        query = self.db.query(column, func.count(self._pk))
        if criterion:
            query = query.filter(*criterion)
        rows = query.group_by(column).order_by(desc(func.count(self._pk))).all()
        return {value: count for value, count in rows}
