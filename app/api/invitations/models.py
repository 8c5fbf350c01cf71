from sqlalchemy import Column, Date, DateTime, Index, Integer, String, Time, text

from app.api.invitations.schemas import InvitationStatus
from app.core.database import Base
from app.core.utils import current_time, new_id


class Invitation(Base):
    __tablename__ = 'invitations'
    __table_args__ = (
        # A code may be reused once its previous invitation is no longer pending
        Index(
            'uix_invitations_pending_alpha_code',
            'alpha_code',
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    employee_id = Column(Integer, index=True, nullable=False)
    visitor_name = Column(String, nullable=False)
    visitor_phone = Column(String, nullable=False)
    visit_date = Column(Date, index=True, nullable=False)
    visit_time = Column(Time, nullable=False)
    alpha_code = Column(String(12), index=True, nullable=False)
    qr_code = Column(String, nullable=False)
    status = Column(
        String, index=True, nullable=False, default=InvitationStatus.PENDING.value
    )
    used_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    expired_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=current_time)
    updated_at = Column(DateTime, default=current_time, onupdate=current_time)

    @property
    def status_changed_at(self):
        return {
            InvitationStatus.USED.value: self.used_at,
            InvitationStatus.CANCELLED.value: self.cancelled_at,
            InvitationStatus.EXPIRED.value: self.expired_at,
        }.get(self.status)

    def __repr__(self):
        return f'<Invitation {self.id} code={self.alpha_code} status={self.status}>'
