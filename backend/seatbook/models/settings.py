"""
Platform-wide commission settings: a single row, read by the booking
engines through an immutable snapshot.
"""

from sqlalchemy import CheckConstraint, Column, Integer

from seatbook.db.base import Base, TimestampMixin


class CommissionSettings(Base, TimestampMixin):
    __tablename__ = "commission_settings"

    id = Column(Integer, primary_key=True)
    coin_price = Column(Integer, nullable=False, default=1)  # 1 coin = 1 currency unit
    wallet_commission = Column(Integer, nullable=False, default=0)
    booking_commission = Column(Integer, nullable=False, default=0)  # coins per booked day

    __table_args__ = (
        CheckConstraint("coin_price > 0", name="check_settings_coin_price_positive"),
        CheckConstraint("wallet_commission >= 0", name="check_settings_wallet_commission"),
        CheckConstraint("booking_commission >= 0", name="check_settings_booking_commission"),
    )
