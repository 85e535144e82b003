from fastapi import Depends, Request
from sqlalchemy.orm import Session

from .database import get_db
from .services import NasaClient
from .state import AlertStateStore, WatchlistStore


def get_nasa_client(request: Request) -> NasaClient:
    return request.app.state.nasa


def get_alert_store(db: Session = Depends(get_db)) -> AlertStateStore:
    return AlertStateStore(db)


def get_watchlist_store(db: Session = Depends(get_db)) -> WatchlistStore:
    return WatchlistStore(db)
