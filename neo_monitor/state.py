"""Per-user alert state and watchlist persistence.

Writes upsert on the composite keys ``(user_id, alert_id)`` and
``(user_id, neo_id)`` so repeating a mutation never adds rows.
"""
import logging
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import models
from .errors import DbError, ValidationError, db_error_from
from .logging_utils import log_event
from .outcome import Outcome
from .schemas import Alert, AlertStateView

logger = logging.getLogger(__name__)

_DIALECT_INSERTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    try:
        return _DIALECT_INSERTS[dialect]
    except KeyError:
        raise DbError(f"Upsert is not supported on {dialect}", code="DB_UNSUPPORTED")


def _execute_write(db: Session, stmt, table: str, user_id: str) -> None:
    try:
        db.execute(stmt)
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        log_event(logger, "state.write_failed", "State store write failed",
                  level="error", table=table, user_id=user_id, error=type(exc).__name__)
        raise db_error_from(exc) from exc


def normalize_alert_ids(ids: Iterable) -> List[str]:
    """Stringify, strip and de-duplicate ids, dropping blanks, keeping order."""
    seen: Dict[str, None] = {}
    for raw in ids or []:
        alert_id = "" if raw is None else str(raw).strip()
        if alert_id:
            seen.setdefault(alert_id, None)
    return list(seen)


class AlertStateStore:
    def __init__(self, db: Session):
        self.db = db

    def get_states(self, user_id: str, alert_ids: Iterable) -> Dict[str, AlertStateView]:
        """One query for all ids; ids without a row are simply absent."""
        ids = normalize_alert_ids(alert_ids)
        if not ids:
            return {}
        stmt = select(models.AlertState).where(
            models.AlertState.user_id == user_id,
            models.AlertState.alert_id.in_(ids),
        )
        try:
            rows = self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise db_error_from(exc) from exc
        return {row.alert_id: AlertStateView.model_validate(row) for row in rows}

    def upsert(
        self,
        user_id: str,
        alert_ids: Iterable,
        *,
        is_read: Optional[bool] = None,
        is_deleted: Optional[bool] = None,
    ) -> List[str]:
        ids = normalize_alert_ids(alert_ids)
        if not ids:
            return []

        now = models.utcnow()
        flags = {}
        if is_read is not None:
            flags["is_read"] = is_read
        if is_deleted is not None:
            flags["is_deleted"] = is_deleted

        insert = _insert_for(self.db)
        stmt = insert(models.AlertState).values(
            [
                {
                    "user_id": user_id,
                    "alert_id": alert_id,
                    "is_read": flags.get("is_read", False),
                    "is_deleted": flags.get("is_deleted", False),
                    "updated_at": now,
                }
                for alert_id in ids
            ]
        )
        update = {name: stmt.excluded[name] for name in flags}
        update["updated_at"] = stmt.excluded.updated_at
        stmt = stmt.on_conflict_do_update(index_elements=["user_id", "alert_id"], set_=update)
        _execute_write(self.db, stmt, "user_alert_states", user_id)
        return ids

    def mark_read(self, user_id: str, alert_id: str) -> str:
        ids = self.upsert(user_id, [alert_id], is_read=True)
        if not ids:
            raise ValidationError("id is required")
        return ids[0]

    def mark_all_read(self, user_id: str, alert_ids: Iterable) -> int:
        return len(self.upsert(user_id, alert_ids, is_read=True))

    def delete(self, user_id: str, alert_id: str) -> str:
        ids = self.upsert(user_id, [alert_id], is_read=True, is_deleted=True)
        if not ids:
            raise ValidationError("id is required")
        return ids[0]


def load_alert_overlay(store: AlertStateStore, user_id: str, alert_ids: List[str]) -> Outcome[Dict[str, AlertStateView]]:
    """Read the user's alert state, degrading to no overlay if the store fails."""
    try:
        return Outcome(store.get_states(user_id, alert_ids))
    except DbError as exc:
        log_event(logger, "alerts.overlay_degraded", "Serving alerts without user state",
                  level="warning", user_id=user_id, code=exc.code)
        return Outcome.fallback({}, exc.code)


def merge_alert_states(alerts: List[Alert], states: Dict[str, AlertStateView]) -> List[Alert]:
    merged = []
    for alert in alerts:
        state = states.get(alert.id)
        if state is None:
            merged.append(alert)
        elif not state.is_deleted:
            merged.append(alert.model_copy(update={"read": alert.read or state.is_read}))
    return merged


class WatchlistStore:
    def __init__(self, db: Session):
        self.db = db

    def list_items(self, user_id: str) -> List[models.WatchlistItem]:
        stmt = (
            select(models.WatchlistItem)
            .where(models.WatchlistItem.user_id == user_id)
            .order_by(models.WatchlistItem.added_at.desc(), models.WatchlistItem.id.desc())
        )
        try:
            return self.db.execute(stmt).scalars().all()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise db_error_from(exc) from exc

    def get(self, user_id: str, neo_id: str) -> Optional[models.WatchlistItem]:
        stmt = select(models.WatchlistItem).where(
            models.WatchlistItem.user_id == user_id,
            models.WatchlistItem.neo_id == neo_id,
        )
        try:
            return self.db.execute(stmt).scalars().first()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise db_error_from(exc) from exc

    def add(self, user_id: str, neo_id: str, neo_name: str) -> models.WatchlistItem:
        """Insert or refresh; an existing item keeps its alert_enabled flag."""
        insert = _insert_for(self.db)
        stmt = insert(models.WatchlistItem).values(
            user_id=user_id,
            neo_id=neo_id,
            neo_name=neo_name,
            added_at=models.utcnow(),
            alert_enabled=False,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["user_id", "neo_id"],
            set_={"neo_name": stmt.excluded.neo_name, "added_at": stmt.excluded.added_at},
        )
        _execute_write(self.db, stmt, "user_watchlist", user_id)
        item = self.get(user_id, neo_id)
        if item is None:
            raise DbError("Watchlist item missing after upsert")
        return item

    def remove(self, user_id: str, neo_id: str) -> None:
        stmt = delete(models.WatchlistItem).where(
            models.WatchlistItem.user_id == user_id,
            models.WatchlistItem.neo_id == neo_id,
        )
        _execute_write(self.db, stmt, "user_watchlist", user_id)

    def toggle_alert(self, user_id: str, neo_id: str) -> bool:
        item = self.get(user_id, neo_id)
        if item is None:
            raise ValidationError("NEO is not in your watchlist")
        enabled = not item.alert_enabled
        item.alert_enabled = enabled
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise db_error_from(exc) from exc
        return enabled

