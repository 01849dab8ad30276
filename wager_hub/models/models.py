from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import (
    JSON,
    BigInteger,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    TypeDecorator,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from wager_hub.database import Base


class UTCDateTime(TypeDecorator):
    """Timezone-aware datetime that always reads back as UTC (SQLite drops tzinfo)."""
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class Money(TypeDecorator):
    """
    Decimal amount stored as integer cents.

    Plain Python values compared with or added to a Money column are bound as
    cents too, so conditional balance updates stay exact on every backend.
    """
    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return value
        cents = (Decimal(str(value)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return int(cents)

    def process_result_value(self, value, dialect):
        if value is None:
            return value
        return Decimal(int(value)).scaleb(-2)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Account(Base):
    __tablename__ = "accounts"
    owner_id = Column(String, primary_key=True)
    virtual_balance = Column(Money, nullable=False, default=0)
    real_balance = Column(Money, nullable=False, default=0)
    reward_credits = Column(Money, nullable=False, default=0)
    external_player_id = Column(String, unique=True, index=True, nullable=True)
    region = Column(String, nullable=True)
    win_rate = Column(Float, nullable=True)
    created_at = Column(UTCDateTime, default=utcnow, server_default=func.now())
    wagers = relationship("Wager", back_populates="owner", order_by="Wager.placed_at")
    __table_args__ = (
        CheckConstraint("virtual_balance >= 0", name="ck_virtual_balance_non_negative"),
        CheckConstraint("real_balance >= 0", name="ck_real_balance_non_negative"),
        CheckConstraint("reward_credits >= 0", name="ck_reward_credits_non_negative"),
    )

class Wager(Base):
    __tablename__ = "wagers"
    id = Column(Integer, primary_key=True)
    owner_id = Column(String, ForeignKey("accounts.owner_id"), index=True, nullable=False)
    stake = Column(Money, nullable=False)
    currency_mode = Column(String, nullable=False)  # virtual|real
    odds = Column(Numeric(6, 2), nullable=False)
    potential_payout = Column(Money, nullable=False)
    status = Column(String, nullable=False, default="pending")
    placed_at = Column(UTCDateTime, nullable=False, default=utcnow)
    resolved_at = Column(UTCDateTime, nullable=True)
    external_match_id = Column(String, nullable=True)
    result_snapshot = Column(JSON, nullable=True)
    owner = relationship("Account", back_populates="wagers")
    __table_args__ = (
        CheckConstraint("stake > 0", name="ck_stake_positive"),
        UniqueConstraint("owner_id", "external_match_id", name="uq_owner_match"),
        Index(
            "uq_one_pending_wager_per_owner",
            "owner_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )
