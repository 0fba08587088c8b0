"""
Withdraw requests: a librarian asks to be paid out part of the library's
accumulated earnings; an admin resolves or rejects the request.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String

from seatbook.db.base import Base, TimestampMixin, utcnow
from seatbook.db.types import UTCDateTime


class WithdrawStatus:
    PENDING = "pending"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class WithdrawRequest(Base, TimestampMixin):
    __tablename__ = "withdraw_requests"

    id = Column(Integer, primary_key=True, index=True)
    library_id = Column(Integer, ForeignKey("libraries.id"), nullable=False, index=True)
    requested_amount = Column(Integer, nullable=False)
    status = Column(String(20), nullable=False, default=WithdrawStatus.PENDING)
    rejected_reason = Column(String(500), nullable=True)
    requested_at = Column(UTCDateTime, nullable=False, default=utcnow)
    resolved_at = Column(UTCDateTime, nullable=True)
    rejected_at = Column(UTCDateTime, nullable=True)

    __table_args__ = (
        CheckConstraint("requested_amount > 0", name="check_withdraw_amount_positive"),
        CheckConstraint(
            "status IN ('pending', 'resolved', 'rejected')", name="check_withdraw_status"
        ),
    )
