"""Data models for the filtered action indexer."""

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import declarative_base

# SQLAlchemy base
Base = declarative_base()

ACCOUNTS_COLLECTION = "accounts"
FILTER_COLLECTION = "filter_actions"


class Account(Base):
    """Chain account with the most recently published ABI."""

    __tablename__ = ACCOUNTS_COLLECTION
    __table_args__ = (UniqueConstraint("name", name="uq_accounts_name"),)

    id = Column(Integer, primary_key=True)
    name = Column(String(13), nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    abi = Column(JSON(none_as_null=True), nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=True)


class FilterAction(Base):
    """Decoded action persisted because its account is in the filter set."""

    __tablename__ = FILTER_COLLECTION

    id = Column(Integer, primary_key=True)
    action_num = Column(Integer, nullable=False)
    trx_id = Column(String(64), nullable=False, index=True)
    cfa = Column(Boolean, nullable=False, default=False)
    account = Column(String(13), nullable=False, index=True)
    name = Column(String(13), nullable=False)
    authorization = Column(JSON, nullable=False, default=list)
    data = Column(JSON(none_as_null=True), nullable=True)
    hex_data = Column(Text, nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
