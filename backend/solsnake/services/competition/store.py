"""Entity store backends.

Each backend is a small key-value collection per entity type with idempotent
single-key upserts and deletes. Nothing here offers cross-key transactions.
"""
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import requests
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)

ENTITY_TYPES = ('players', 'daily_payments', 'daily_winners')


class StoreError(Exception):
    """Raised when the backing storage cannot complete an operation."""


class StoreAuthError(StoreError):
    """Raised when the backing storage rejects our credentials."""


class InvalidEntityType(ValueError):
    pass


def check_entity_type(entity_type: str) -> str:
    if entity_type not in ENTITY_TYPES:
        raise InvalidEntityType(f"Unknown entity type: {entity_type!r}")
    return entity_type


class EntityStore:
    name = 'base'

    def get(self, entity_type: str, entity_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def list(self, entity_type: str, date: Optional[str] = None) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def put(self, entity_type: str, entity_id: str, value: Dict[str, Any]) -> None:
        raise NotImplementedError

    def delete(self, entity_type: str, entity_id: str) -> None:
        raise NotImplementedError

    def patch(self, entity_type: str, entity_id: str, partial: Dict[str, Any]) -> Dict[str, Any]:
        existing = self.get(entity_type, entity_id) or {}
        merged = {**existing, **(partial or {}), 'id': entity_id}
        self.put(entity_type, entity_id, merged)
        return merged

    def close(self) -> None:
        pass


class MemoryEntityStore(EntityStore):
    name = 'memory'

    def __init__(self):
        self._items: Dict[Tuple[str, str], Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def get(self, entity_type, entity_id):
        check_entity_type(entity_type)
        with self._lock:
            value = self._items.get((entity_type, entity_id))
            return dict(value) if value is not None else None

    def list(self, entity_type, date=None):
        check_entity_type(entity_type)
        with self._lock:
            return [
                dict(v) for (t, _), v in self._items.items()
                if t == entity_type and (date is None or v.get('date') == date)
            ]

    def put(self, entity_type, entity_id, value):
        check_entity_type(entity_type)
        with self._lock:
            self._items[(entity_type, entity_id)] = {**(value or {}), 'id': entity_id}

    def delete(self, entity_type, entity_id):
        check_entity_type(entity_type)
        with self._lock:
            self._items.pop((entity_type, entity_id), None)

    def close(self):
        with self._lock:
            self._items.clear()


class SqlEntityStore(EntityStore):
    """Durable store on the application's Flask-SQLAlchemy session.

    Must be used inside an application context.
    """
    name = 'sql'

    def __init__(self, db):
        self.db = db

    def _record(self, entity_type, entity_id):
        from solsnake.models import StateRecord
        return self.db.session.get(StateRecord, (entity_type, entity_id))

    def get(self, entity_type, entity_id):
        check_entity_type(entity_type)
        try:
            record = self._record(entity_type, entity_id)
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f"get {entity_type}/{entity_id} failed: {exc}") from exc
        return record.to_dict() if record else None

    def list(self, entity_type, date=None):
        from solsnake.models import StateRecord
        check_entity_type(entity_type)
        try:
            query = StateRecord.query.filter_by(entity_type=entity_type)
            if date is not None:
                query = query.filter_by(date=date)
            return [r.to_dict() for r in query.all()]
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f"list {entity_type} date={date} failed: {exc}") from exc

    def put(self, entity_type, entity_id, value):
        from solsnake.models import StateRecord
        check_entity_type(entity_type)
        data = {**(value or {}), 'id': entity_id}
        date = data.get('date')
        try:
            record = self._record(entity_type, entity_id)
            if record is None:
                record = StateRecord(entity_type=entity_type, id=entity_id)
            record.data = data
            record.date = str(date) if date else None
            record.updated_at = time.time()
            self.db.session.add(record)
            self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f"put {entity_type}/{entity_id} failed: {exc}") from exc

    def delete(self, entity_type, entity_id):
        check_entity_type(entity_type)
        try:
            record = self._record(entity_type, entity_id)
            if record is not None:
                self.db.session.delete(record)
                self.db.session.commit()
        except SQLAlchemyError as exc:
            self.db.session.rollback()
            raise StoreError(f"delete {entity_type}/{entity_id} failed: {exc}") from exc

    def close(self):
        try:
            self.db.session.remove()
        except RuntimeError:
            # No application context left to tear down
            pass


class RemoteEntityStore(EntityStore):
    """Client for another deployment's ``/api/state`` endpoint."""
    name = 'remote'

    def __init__(self, base_url: str, timeout: float = 10.0, session=None):
        if not base_url:
            raise ValueError("STATE_API_BASE_URL is required for the remote store")
        self.url = base_url.rstrip('/') + '/api/state'
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()

    def _request(self, method, params, body=None):
        try:
            resp = self.session.request(method, self.url, params=params, json=body, timeout=self.timeout)
        except requests.RequestException as exc:
            raise StoreError(f"{method} {params} failed: {exc}") from exc
        if resp.status_code == 401:
            raise StoreAuthError(f"{method} {params} unauthorized")
        if resp.status_code >= 400:
            raise StoreError(f"{method} {params} returned {resp.status_code}")
        try:
            return resp.json()
        except ValueError as exc:
            raise StoreError(f"{method} {params} returned invalid JSON") from exc

    def get(self, entity_type, entity_id):
        check_entity_type(entity_type)
        return self._request('GET', {'type': entity_type, 'id': entity_id}) or None

    def list(self, entity_type, date=None):
        check_entity_type(entity_type)
        params = {'type': entity_type}
        if date is not None:
            params['date'] = date
        values = self._request('GET', params) or []
        return [v for v in values if v]

    def put(self, entity_type, entity_id, value):
        check_entity_type(entity_type)
        self._request('POST', {'type': entity_type}, {**(value or {}), 'id': entity_id})

    def patch(self, entity_type, entity_id, partial):
        check_entity_type(entity_type)
        self._request('PUT', {'type': entity_type, 'id': entity_id}, dict(partial or {}))
        return self.get(entity_type, entity_id) or {}

    def delete(self, entity_type, entity_id):
        check_entity_type(entity_type)
        self._request('DELETE', {'type': entity_type, 'id': entity_id})

    def close(self):
        self.session.close()


def init_store(config, db=None) -> EntityStore:
    """Build the store handle selected by ``STATE_BACKEND``."""
    backend = (config.get('STATE_BACKEND') or 'sql').lower()
    if backend == 'memory':
        store = MemoryEntityStore()
    elif backend == 'remote':
        store = RemoteEntityStore(
            config.get('STATE_API_BASE_URL', ''),
            timeout=float(config.get('STATE_API_TIMEOUT_SEC', 10)),
        )
    elif backend == 'sql':
        if db is None:
            raise ValueError("the sql store needs a Flask-SQLAlchemy handle")
        store = SqlEntityStore(db)
    else:
        raise ValueError(f"Unknown STATE_BACKEND: {backend!r}")
    logger.info(f"[store-init] backend={store.name}")
    return store
