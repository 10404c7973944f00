"""
Google Ads Account Manager — Database Models
Users, the Google Ads accounts they manage, and the campaigns mirrored from those accounts.
Ownership cascades downward: User → ManagedAccount → Campaign.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from sqlalchemy import (
    String, Text, Integer, Numeric, Date, DateTime,
    ForeignKey, Index, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship
from ads_manager.database import Base


def _utcnow() -> datetime:
    """Naive UTC now, matching DB columns (TIMESTAMP WITHOUT TIME ZONE)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


# ══════════════════════════════════════════════════════════════════════
#  USERS
# ══════════════════════════════════════════════════════════════════════

class User(Base):
    """Local identity. Created by password registration or first Google login."""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    google_id: Mapped[str | None] = mapped_column(String(255), nullable=True, unique=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    password_hash: Mapped[str | None] = mapped_column(String(255), nullable=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    picture: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    # Encrypted at rest (see ads_manager.crypto)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    managed_accounts: Mapped[list["ManagedAccount"]] = relationship(
        "ManagedAccount", back_populates="user", cascade="all, delete-orphan", passive_deletes=True,
    )


# ══════════════════════════════════════════════════════════════════════
#  MANAGED ACCOUNTS — Google Ads accounts linked to a user
# ══════════════════════════════════════════════════════════════════════

class ManagedAccount(Base):
    """A Google Ads account a user has linked, with the delegated OAuth tokens used to call it."""
    __tablename__ = "managed_accounts"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    managed_google_id: Mapped[str] = mapped_column(String(255), nullable=False)
    managed_email: Mapped[str] = mapped_column(String(255), nullable=False)
    access_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[str | None] = mapped_column(Text, nullable=True)
    token_expires_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ads_account_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    descriptive_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    currency_code: Mapped[str | None] = mapped_column(String(8), nullable=True)
    time_zone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    user: Mapped["User"] = relationship("User", back_populates="managed_accounts")
    campaigns: Mapped[list["Campaign"]] = relationship(
        "Campaign", back_populates="managed_account", cascade="all, delete-orphan", passive_deletes=True,
    )

    __table_args__ = (
        UniqueConstraint("user_id", "managed_google_id", name="uq_managed_account_per_user"),
        Index("ix_managed_accounts_user_id", "user_id"),
    )


# ══════════════════════════════════════════════════════════════════════
#  CAMPAIGNS — Local mirror of campaigns created through the API
# ══════════════════════════════════════════════════════════════════════

class Campaign(Base):
    """A Google Ads campaign created through this service."""
    __tablename__ = "campaigns"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    managed_account_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("managed_accounts.id", ondelete="CASCADE"), nullable=False,
    )
    campaign_id: Mapped[str] = mapped_column(String(64), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str | None] = mapped_column(String(32), nullable=True)
    budget: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow, onupdate=_utcnow)

    managed_account: Mapped["ManagedAccount"] = relationship("ManagedAccount", back_populates="campaigns")

    __table_args__ = (
        UniqueConstraint("managed_account_id", "campaign_id", name="uq_campaign_per_managed_account"),
        Index("ix_campaigns_managed_account_id", "managed_account_id"),
    )
