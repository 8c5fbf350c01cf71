from sqlalchemy import Boolean, Column, Date, DateTime, Index, Integer, String, text

from app.core.database import Base
from app.core.utils import current_time, new_id


class WalkInVisitor(Base):
    __tablename__ = 'walk_in_visitors'
    __table_args__ = (
        # Receipt codes only need to be unique among visitors still on site
        Index(
            'uix_walk_in_visitors_outstanding_receipt_code',
            'receipt_code',
            unique=True,
            sqlite_where=text('exit_validated = 0'),
            postgresql_where=text('exit_validated = false'),
        ),
    )

    id = Column(String(36), primary_key=True, default=new_id)
    site_id = Column(Integer, index=True, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    id_card_number = Column(String, nullable=True)
    birth_date = Column(Date, nullable=True)
    gender = Column(String, nullable=True)
    nationality = Column(String, nullable=True)
    address = Column(String, nullable=True)
    id_card_expiry = Column(Date, nullable=True)

    receipt_code = Column(String(12), index=True, nullable=False)
    receipt_qr_code = Column(String, nullable=False)
    scanned_by = Column(String, nullable=True)

    exit_validated = Column(Boolean, nullable=False, default=False)
    exit_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=current_time, index=True)

    @property
    def full_name(self) -> str:
        return f'{self.first_name} {self.last_name}'.strip()

    def __repr__(self):
        return f'<WalkInVisitor {self.id} receipt={self.receipt_code}>'
