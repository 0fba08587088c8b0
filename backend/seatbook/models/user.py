"""
User model. The role decides which surface a principal may use:
students book and check in, librarians run a library, admins run the platform.
"""

from sqlalchemy import Column, Integer, String, Boolean, CheckConstraint
from sqlalchemy.orm import relationship

from seatbook.db.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    username = Column(String(100), unique=True, index=True, nullable=False)
    hashed_password = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="student")
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    wallet = relationship("Wallet", back_populates="user", uselist=False, lazy="raise")
    libraries = relationship("Library", back_populates="librarian", lazy="raise")

    __table_args__ = (
        CheckConstraint("role IN ('student', 'librarian', 'admin')", name="check_user_role"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
