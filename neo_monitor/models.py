from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String, UniqueConstraint
from .database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AlertState(Base):
    """Per-user read/deleted flags for a generated alert.

    Rows exist only after a user acts on an alert; a missing row means unread
    and not deleted.
    """

    __tablename__ = "user_alert_states"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    alert_id = Column(String(64), nullable=False)
    is_read = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        UniqueConstraint("user_id", "alert_id", name="uq_user_alert_state"),
    )

    def __repr__(self) -> str:
        return f"<AlertState {self.user_id} {self.alert_id}>"


class WatchlistItem(Base):
    __tablename__ = "user_watchlist"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String, nullable=False, index=True)
    neo_id = Column(String, nullable=False)
    neo_name = Column(String, nullable=False)
    added_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    alert_enabled = Column(Boolean, nullable=False, default=False)

    __table_args__ = (
        UniqueConstraint("user_id", "neo_id", name="uq_user_watchlist_neo"),
    )

    def __repr__(self) -> str:
        return f"<WatchlistItem {self.user_id} {self.neo_id}>"
