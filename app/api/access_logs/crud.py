from typing import List, Optional

from sqlalchemy.orm import Query, Session

from app.api.access_logs import models, schemas
from app.api.base_crud import CRUDBase
from app.core.security import SYSTEM_TOKEN, Capability, TokenData
from app.core.utils import current_time


class CRUDAccessLog(CRUDBase[models.AccessLog, schemas.AccessLogCreate]):
    """Append-only, rows are never updated or deleted."""

    def _check_permission(self, db_obj: models.AccessLog, user: TokenData) -> bool:
        if user == SYSTEM_TOKEN:
            return True
        if not user.can(Capability.VIEW_ACCESS_LOGS):
            return False
        return user.site_id is None or db_obj.site_id == user.site_id

    def _apply_filters(
        self, query: Query, filters: Optional[schemas.AccessLogFilter] = None
    ) -> Query:
        if not filters:
            return query
        if filters.start:
            query = query.filter(self.model.timestamp >= filters.start)
        if filters.end:
            query = query.filter(self.model.timestamp <= filters.end)
        # start/end are not columns, the base filter skips them
        return super()._apply_filters(query, filters)

    def build(self, obj: schemas.AccessLogCreate) -> models.AccessLog:
        """A log row not yet added to any session."""
        data = obj.model_dump()
        data['timestamp'] = obj.timestamp or current_time()
        return self.model(**data)

    def append(
        self, db: Session, obj: schemas.AccessLogCreate
    ) -> models.AccessLog:
        """Stage a log row in the caller's transaction without committing."""
        db_obj = self.build(obj)
        db.add(db_obj)
        db.flush()
        return db_obj

    def find(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[schemas.AccessLogFilter] = None,
        user: Optional[TokenData] = None,
        sort_by: str = 'timestamp',
        sort_order: str = 'desc',
    ) -> List[models.AccessLog]:
        if user and user.site_id is not None:
            filters = filters or schemas.AccessLogFilter()
            filters.site_id = user.site_id
        return super().find(db, skip, limit, filters, user, sort_by, sort_order)


access_log = CRUDAccessLog(models.AccessLog)
