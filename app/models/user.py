"""
User model carrying the credit balance.
"""
import uuid
from sqlalchemy import Column, String, DateTime, Integer

from app.models.base import Base, utcnow


class User(Base):
    """An account that owns jobs and voices and spends credits."""
    __tablename__ = 'users'

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), nullable=True, unique=True)
    credits = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<User {self.id} credits={self.credits}>'
