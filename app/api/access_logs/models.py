from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String

from app.core.database import Base
from app.core.utils import current_time


class AccessLog(Base):
    """Audit trail of every entry and exit. Rows are never updated or deleted."""

    __tablename__ = 'access_logs'
    __table_args__ = (
        CheckConstraint("action_type IN ('entry', 'exit')", name='ck_access_logs_action'),
        CheckConstraint(
            '(CASE WHEN user_id IS NULL THEN 0 ELSE 1 END)'
            ' + (CASE WHEN invitation_id IS NULL THEN 0 ELSE 1 END)'
            ' + (CASE WHEN walk_in_visitor_id IS NULL THEN 0 ELSE 1 END) = 1',
            name='ck_access_logs_single_subject',
        ),
    )

    id = Column(
        Integer,
        primary_key=True,
        autoincrement=True,
        unique=True,
        index=True,
    )
    timestamp = Column(DateTime, default=current_time, index=True, nullable=False)
    action_type = Column(String, nullable=False)
    site_id = Column(Integer, index=True, nullable=False)
    scanned_by = Column(String, nullable=True)

    user_id = Column(String, index=True, nullable=True)
    invitation_id = Column(
        String(36), ForeignKey('invitations.id'), index=True, nullable=True
    )
    walk_in_visitor_id = Column(
        String(36), ForeignKey('walk_in_visitors.id'), index=True, nullable=True
    )

    @property
    def subject_type(self) -> str:
        if self.invitation_id:
            return 'invitation'
        if self.walk_in_visitor_id:
            return 'walk_in_visitor'
        return 'user'

    def __repr__(self):
        return f'<AccessLog {self.id} {self.action_type} site={self.site_id}>'
