import logging
from typing import Dict, List, Optional

from sqlalchemy import inspect, select, update

from .models import AttractionModel, BookingModel, HotelModel, ProfileModel, TourModel, utcnow

logger = logging.getLogger(__name__)

TABLES = {
    "profiles": ProfileModel,
    "hotels": HotelModel,
    "tours": TourModel,
    "attractions": AttractionModel,
    "bookings": BookingModel,
}


def _model_for(table: str):
    try:
        return TABLES[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}")


def row_to_dict(obj) -> Dict:
    return {attr.key: getattr(obj, attr.key) for attr in inspect(obj).mapper.column_attrs}


class Store:
    """
    Thin record store over the SQLAlchemy models, keyed by opaque string ids.
    Every call runs in its own short transaction; write failures propagate.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def get(self, table: str, record_id: str) -> Optional[Dict]:
        model = _model_for(table)
        with self.session_factory() as db:
            obj = db.get(model, record_id)
            return row_to_dict(obj) if obj is not None else None

    def insert(self, table: str, fields: Dict) -> Dict:
        model = _model_for(table)
        with self.session_factory.begin() as db:
            obj = model(**fields)
            db.add(obj)
            db.flush()
            record = row_to_dict(obj)
        return record

    def update(self, table: str, record_id: str, fields: Dict) -> bool:
        """Unconditional update; returns False when no such row exists."""
        return self.update_where(table, record_id, {}, fields)

    def update_where(self, table: str, record_id: str, expected: Dict, fields: Dict) -> bool:
        """
        Atomic single-row conditional update: the row changes only if every
        column in `expected` still holds the given value. Returns True iff a row changed.
        """
        model = _model_for(table)
        stmt = update(model).where(model.id == record_id)
        for column, value in expected.items():
            stmt = stmt.where(getattr(model, column) == value)
        values = dict(fields)
        if hasattr(model, "updated_at"):
            values.setdefault("updated_at", utcnow())
        stmt = stmt.values(**values).execution_options(synchronize_session=False)
        with self.session_factory.begin() as db:
            result = db.execute(stmt)
            changed = result.rowcount == 1
        logger.debug("update %s/%s expected=%s changed=%s", table, record_id, expected, changed)
        return changed

    def query(self, table: str, order_by: Optional[str] = None, descending: bool = False, **filters) -> List[Dict]:
        model = _model_for(table)
        stmt = select(model)
        for column, value in filters.items():
            stmt = stmt.where(getattr(model, column) == value)
        if order_by:
            column = getattr(model, order_by)
            stmt = stmt.order_by(column.desc() if descending else column)
        with self.session_factory() as db:
            return [row_to_dict(obj) for obj in db.scalars(stmt)]
