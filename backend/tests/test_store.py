from urllib.parse import urlsplit

import pytest
import requests

from solsnake import db
from solsnake.services.competition.store import (
    InvalidEntityType,
    MemoryEntityStore,
    RemoteEntityStore,
    SqlEntityStore,
    StoreAuthError,
    StoreError,
    init_store,
)


class FlaskSession:
    """Routes RemoteEntityStore requests into a Flask test client."""

    def __init__(self, client):
        self.client = client
        self.closed = False

    def request(self, method, url, params=None, json=None, timeout=None):
        resp = self.client.open(urlsplit(url).path, method=method, query_string=params, json=json)
        return FakeResponse(resp.status_code, resp.get_json())

    def close(self):
        self.closed = True


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        return self._body


class FixedSession:
    def __init__(self, status_code=200, exc=None):
        self.status_code = status_code
        self.exc = exc

    def request(self, method, url, **kwargs):
        if self.exc:
            raise self.exc
        return FakeResponse(self.status_code, {'error': 'nope'})

    def close(self):
        pass


def exercise_contract(store):
    assert store.get('players', 'missing') is None
    store.put('players', 'p1', {'wallet': 'A', 'score': 3, 'date': '2025-06-10'})
    store.put('players', 'p2', {'wallet': 'B', 'score': 5, 'date': '2025-06-10'})
    store.put('players', 'p3', {'wallet': 'C', 'score': 1, 'date': '2025-06-09'})

    assert store.get('players', 'p1')['id'] == 'p1'
    assert {r['id'] for r in store.list('players', date='2025-06-10')} == {'p1', 'p2'}
    assert {r['id'] for r in store.list('players')} == {'p1', 'p2', 'p3'}
    assert store.list('daily_winners') == []

    # full upsert replaces, it does not merge
    store.put('players', 'p1', {'wallet': 'A', 'score': 4, 'date': '2025-06-10'})
    store.put('players', 'p1', {'wallet': 'A', 'score': 4, 'date': '2025-06-10'})
    assert store.get('players', 'p1')['score'] == 4
    assert len(store.list('players', date='2025-06-10')) == 2

    merged = store.patch('players', 'p2', {'xUsername': 'bee'})
    assert merged['score'] == 5 and merged['xUsername'] == 'bee'
    assert store.get('players', 'p2')['xUsername'] == 'bee'

    # moving a record to another date moves it between date listings
    store.put('players', 'p3', {'wallet': 'C', 'score': 1, 'date': '2025-06-10'})
    assert store.list('players', date='2025-06-09') == []

    store.delete('players', 'p1')
    store.delete('players', 'p1')
    assert store.get('players', 'p1') is None

    with pytest.raises(InvalidEntityType):
        store.get('health', 'x')


def test_memory_store_contract():
    exercise_contract(MemoryEntityStore())


def test_memory_store_returns_copies():
    store = MemoryEntityStore()
    store.put('players', 'p1', {'score': 1})
    store.get('players', 'p1')['score'] = 99
    assert store.get('players', 'p1')['score'] == 1


def test_sql_store_contract(flask_app):
    exercise_contract(SqlEntityStore(db))


def test_remote_store_contract(client):
    exercise_contract(RemoteEntityStore('http://solsnake.test/', session=FlaskSession(client)))


def test_remote_store_maps_failures():
    auth = RemoteEntityStore('http://solsnake.test', session=FixedSession(401))
    with pytest.raises(StoreAuthError):
        auth.get('players', 'x')

    broken = RemoteEntityStore('http://solsnake.test', session=FixedSession(500))
    with pytest.raises(StoreError):
        broken.list('players')

    offline = RemoteEntityStore('http://solsnake.test', session=FixedSession(exc=requests.ConnectionError('down')))
    with pytest.raises(StoreError):
        offline.put('players', 'x', {})


def test_init_store_selects_backend():
    assert isinstance(init_store({'STATE_BACKEND': 'memory'}), MemoryEntityStore)
    assert isinstance(init_store({'STATE_BACKEND': 'sql'}, db=db), SqlEntityStore)
    remote = init_store({'STATE_BACKEND': 'remote', 'STATE_API_BASE_URL': 'http://x', 'STATE_API_TIMEOUT_SEC': 3})
    assert isinstance(remote, RemoteEntityStore)
    assert remote.url == 'http://x/api/state'
    assert remote.timeout == 3
    with pytest.raises(ValueError):
        init_store({'STATE_BACKEND': 'carrier-pigeon'})
    with pytest.raises(ValueError):
        init_store({'STATE_BACKEND': 'remote'})


def test_app_store_lifecycle():
    from conftest import TestConfig
    from solsnake import close_store, create_app

    class MemoryConfig(TestConfig):
        STATE_BACKEND = 'memory'

    app = create_app(MemoryConfig)
    store = app.extensions['solsnake']['store']
    assert isinstance(store, MemoryEntityStore)
    assert app.extensions['solsnake']['engine'].store is store

    store.put('players', 'p1', {'score': 1})
    close_store(app)
    assert store.list('players') == []
