# app/models/user.py
from sqlalchemy import Column, String

from app.database import Base
from app.models.mixins import TimestampMixin


class User(Base, TimestampMixin):
    """
    Model representing user accounts.
    The id is the subject claim issued by the external identity provider.
    """
    __tablename__ = "users"

    id = Column(String(64), primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=True)
    name = Column(String(100), nullable=True)

    # Billing state, written by the billing webhooks and read here
    tier = Column(String(20), nullable=True)  # free, paid
    subscription_status = Column(String(32), nullable=True)
    plan = Column(String(50), nullable=True)

    def __repr__(self):
        return f"<User {self.id} - {self.email}>"

