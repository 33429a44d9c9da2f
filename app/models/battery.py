# app/models/battery.py
from sqlalchemy import (
    Boolean, CheckConstraint, Column, Date, ForeignKey, Integer, JSON, String, UniqueConstraint
)

from app.database import Base
from app.models.mixins import CreatedAtMixin, TimestampMixin, generate_uuid


class BatteryAccount(Base, TimestampMixin):
    """A user's battery balance and daily allowance"""
    __tablename__ = "user_battery"

    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    total_balance = Column(Integer, default=0, nullable=False)
    daily_allowance = Column(Integer, default=0, nullable=False)
    last_daily_reset = Column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("total_balance >= 0", name="ck_user_battery_balance_non_negative"),
        CheckConstraint("daily_allowance >= 0", name="ck_user_battery_allowance_non_negative"),
    )

    def __repr__(self):
        return f"<BatteryAccount - User: {self.user_id} - Balance: {self.total_balance}>"


class DailyUsageSummary(Base, TimestampMixin):
    """Battery consumed by a user on one UTC calendar day"""
    __tablename__ = "daily_usage_summary"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)

    total_battery_used = Column(Integer, default=0, nullable=False)
    total_messages = Column(Integer, default=0, nullable=False)

    # Only one row per user per day
    __table_args__ = (
        UniqueConstraint('user_id', 'date', name='uix_daily_usage_summary'),
    )

    def __repr__(self):
        return f"<DailyUsageSummary - User: {self.user_id} - Date: {self.date}>"


class DailyModelUsage(Base):
    """Per-model message counts backing the daily summary"""
    __tablename__ = "daily_model_usage"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    date = Column(Date, nullable=False)
    model = Column(String(100), nullable=False)
    message_count = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'date', 'model', name='uix_daily_model_usage'),
    )


class UsageLedgerEntry(Base, CreatedAtMixin):
    """One billed model invocation. The unique message id prevents double charges."""
    __tablename__ = "api_usage_tracking"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    conversation_id = Column(String(64), nullable=False, index=True)
    message_id = Column(String(64), nullable=False, unique=True)
    model = Column(String(100), nullable=False)
    input_tokens = Column(Integer, nullable=False)
    output_tokens = Column(Integer, nullable=False)
    cached = Column(Boolean, default=False, nullable=False)
    battery_used = Column(Integer, nullable=False)
    balance_after = Column(Integer, nullable=False)

    def __repr__(self):
        return f"<UsageLedgerEntry {self.message_id} - {self.model}: {self.battery_used} BU>"


class BatteryTransaction(Base, CreatedAtMixin):
    """Audit trail of every committed balance change"""
    __tablename__ = "battery_transactions"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    user_id = Column(String(64), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)  # usage, subscription, daily, topup, adjustment
    amount = Column(Integer, nullable=False)  # negative for usage
    balance_after = Column(Integer, nullable=False)
    description = Column(String(255), nullable=True)
    details = Column("metadata", JSON, nullable=True)

    def __repr__(self):
        return f"<BatteryTransaction {self.type} {self.amount:+d} - User: {self.user_id}>"
