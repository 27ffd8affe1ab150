from sqlalchemy import Column, DateTime, Integer, JSON, String
from sqlalchemy.sql import func

from database import Base


class EngagementRecord(Base):
    """Local-only engagement state for one connected wallet."""

    __tablename__ = "engagement_records"

    id = Column(Integer, primary_key=True, index=True)
    wallet_address = Column(String(64), unique=True, index=True, nullable=False)
    liked_post_ids = Column(JSON, nullable=False, default=list)  # ledger-confirmed likes
    bookmarked_post_ids = Column(JSON, nullable=False, default=list)  # never on ledger
    followed_owners = Column(JSON, nullable=False, default=list)  # ledger-confirmed follows
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
