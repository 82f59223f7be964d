import logging
from typing import Iterable, List

from sqlalchemy.orm import Session

from .models import CostUpdateRecord, RecenterRecord, TradeRecord
from .types import CostUpdated, Event, GridRecentered, TradeExecuted

logger = logging.getLogger(__name__)


class EventJournal:
    """Persists engine events (trades, cost updates, recenters) to the database."""

    def _row(self, event: Event):
        if isinstance(event, TradeExecuted):
            return TradeRecord(
                option_type=event.option_type.value,
                side=event.side.value,
                strike=str(event.strike),
                size=str(event.size),
                cost=str(event.cost),
            )
        if isinstance(event, CostUpdated):
            return CostUpdateRecord(old_cost=str(event.old_cost), new_cost=str(event.new_cost))
        if isinstance(event, GridRecentered):
            return RecenterRecord(old_center=str(event.old_center), new_center=str(event.new_center))
        raise TypeError(f"unknown event type: {type(event).__name__}")

    def record(self, db: Session, event: Event):
        row = self._row(event)
        db.add(row)
        db.commit()
        db.refresh(row)
        return row

    def record_all(self, db: Session, events: Iterable[Event]) -> List:
        rows = [self._row(e) for e in events]
        db.add_all(rows)
        db.commit()
        logger.debug("Journaled %d events", len(rows))
        return rows

    def list_trades(self, db: Session, limit: int = 100) -> List[TradeRecord]:
        return db.query(TradeRecord).order_by(TradeRecord.id.desc()).limit(limit).all()

    def list_cost_updates(self, db: Session, limit: int = 100) -> List[CostUpdateRecord]:
        return db.query(CostUpdateRecord).order_by(CostUpdateRecord.id.desc()).limit(limit).all()

    def list_recenters(self, db: Session, limit: int = 100) -> List[RecenterRecord]:
        return db.query(RecenterRecord).order_by(RecenterRecord.id.desc()).limit(limit).all()
