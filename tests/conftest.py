"""Shared test fixtures."""
import json
import os

# Must be set before leadgen.config is imported
os.environ.setdefault('DATABASE_URL', 'sqlite:///:memory:')
os.environ.setdefault('RQ_ASYNC', '0')

import pytest
from unittest.mock import patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from leadgen.database import Base


# ── Fake Redis ────────────────────────────────────────────────────────────────

class FakePipeline:
    """Queues calls and runs them back to back on execute()."""

    def __init__(self, redis):
        self._redis = redis
        self._calls = []

    def __getattr__(self, name):
        method = getattr(self._redis, name)

        def queue(*args, **kwargs):
            self._calls.append((method, args, kwargs))
            return self
        return queue

    def execute(self):
        results = [method(*args, **kwargs) for method, args, kwargs in self._calls]
        self._calls = []
        return results


class FakeRedis:
    """In-memory stand-in for the redis-py calls the registry makes."""

    def __init__(self):
        self.strings = {}
        self.lists = {}
        self.zsets = {}
        self.ttls = {}

    def ping(self):
        return True

    def get(self, key):
        return self.strings.get(key)

    def set(self, key, value):
        self.strings[key] = value
        return True

    def setex(self, key, ttl, value):
        self.strings[key] = value
        self.ttls[key] = ttl
        return True

    def delete(self, *keys):
        removed = 0
        for key in keys:
            for store in (self.strings, self.lists, self.zsets):
                if key in store:
                    del store[key]
                    removed += 1
            self.ttls.pop(key, None)
        return removed

    def expire(self, key, ttl):
        if key in self.strings or key in self.lists or key in self.zsets:
            self.ttls[key] = ttl
            return True
        return False

    def rpush(self, key, *values):
        items = self.lists.setdefault(key, [])
        items.extend(values)
        return len(items)

    def lrange(self, key, start, end):
        items = self.lists.get(key, [])
        if end < 0:
            end = len(items) + end
        return items[start:end + 1]

    def zadd(self, key, mapping):
        zset = self.zsets.setdefault(key, {})
        added = sum(1 for member in mapping if member not in zset)
        zset.update(mapping)
        return added

    def zremrangebyscore(self, key, low, high):
        zset = self.zsets.get(key, {})
        doomed = [m for m, score in zset.items() if low <= score <= high]
        for member in doomed:
            del zset[member]
        return len(doomed)

    def zrevrange(self, key, start, end):
        zset = self.zsets.get(key, {})
        members = [m for m, _ in sorted(zset.items(), key=lambda kv: kv[1], reverse=True)]
        if end < 0:
            end = len(members) + end
        return members[start:end + 1]

    def zrem(self, key, *members):
        zset = self.zsets.get(key, {})
        removed = 0
        for member in members:
            if zset.pop(member, None) is not None:
                removed += 1
        return removed

    def pipeline(self, transaction=True):
        return FakePipeline(self)


@pytest.fixture
def fake_redis():
    """FakeRedis patched in as the process-level Redis client."""
    redis = FakeRedis()
    with patch('leadgen.extensions.redis_client', redis):
        yield redis


@pytest.fixture
def fail_append_once(fake_redis):
    """
    Arm a one-time ConnectionError on the transaction that appends an event.

    Usage: fail_append_once('completed') — the next MULTI that RPUSHes a
    `completed` event raises instead of executing; later ones succeed.
    """
    armed = set()
    real_pipeline = fake_redis.pipeline

    def pipeline(transaction=True):
        pipe = real_pipeline(transaction)
        execute = pipe.execute

        def flaky_execute():
            for method, args, _ in pipe._calls:
                if method.__name__ != 'rpush':
                    continue
                event_type = json.loads(args[1])['type']
                if event_type in armed:
                    armed.discard(event_type)
                    pipe._calls = []
                    raise ConnectionError(f'Redis went away appending {event_type}')
            return execute()

        pipe.execute = flaky_execute
        return pipe

    with patch.object(fake_redis, 'pipeline', pipeline):
        yield armed.add


@pytest.fixture
def registry(fake_redis):
    from leadgen.models.session import SessionRegistry
    return SessionRegistry(fake_redis)


# ── Database ──────────────────────────────────────────────────────────────────

@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created."""
    engine = create_engine('sqlite:///:memory:')
    import leadgen.models.lead  # noqa: F401
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """SQLAlchemy session bound to in-memory SQLite. Rolls back after each test."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_get_session(db_engine):
    """
    Route get_session() calls to the in-memory engine.

    leadgen.services.db binds get_session at import time, so the local name
    is patched too. Each call gets its own session so close() in production
    code does not end the test's session.
    """
    TestSession = sessionmaker(bind=db_engine)
    with patch('leadgen.database.get_session', side_effect=lambda: TestSession()), \
         patch('leadgen.services.db.get_session', side_effect=lambda: TestSession()):
        yield TestSession


# ── Flask ─────────────────────────────────────────────────────────────────────

@pytest.fixture
def app(fake_redis):
    """Flask test app."""
    from leadgen import create_app
    app = create_app()
    app.config['TESTING'] = True
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c


# ── Domain factories ─────────────────────────────────────────────────────────

@pytest.fixture
def make_lead():
    """Factory fixture — builds a NormalizedLead with sensible defaults."""
    from leadgen.pipeline.normalizer import NormalizedLead

    def _make(**overrides):
        defaults = dict(
            first_name='Jane',
            last_name='Doe',
            full_name='Jane Doe',
            email='jane@acme.com',
            title='Plant Manager',
            seniority='Manager',
            company_name='Acme Manufacturing',
            company_industry='Manufacturing',
            company_size='201-500',
            location='Houston, Texas, United States',
            profile_url='https://www.linkedin.com/in/janedoe',
            source_method='broker',
        )
        defaults.update(overrides)
        return NormalizedLead(**defaults)
    return _make


@pytest.fixture
def apollo_records():
    """Raw records resembling the Apollo scraper dataset."""
    return [
        {
            'firstName': 'Jane', 'lastName': 'Doe', 'title': 'Plant Manager',
            'email': 'jane@acme.com', 'seniority': 'manager',
            'linkedinUrl': 'http://www.linkedin.com/in/janedoe',
            'city': 'Houston', 'state': 'Texas', 'country': 'United States',
            'organization': {'name': 'Acme Manufacturing', 'industry': 'manufacturing',
                             'estimated_num_employees': 350},
        },
        {
            'firstName': 'Raj', 'lastName': 'Patel', 'title': 'VP Operations',
            'email': 'email_not_unlocked@domain.com',
            'linkedinUrl': 'https://www.linkedin.com/in/rajpatel/',
            'city': 'Austin', 'state': 'Texas', 'country': 'United States',
            'organization': {'name': 'Forge Robotics', 'industry': 'robotics',
                             'estimated_num_employees': 1200},
        },
        {
            'fullName': 'Li Wei', 'jobTitle': 'Maintenance Supervisor',
            'companyName': 'Delta Energy', 'companyIndustry': 'Energy',
            'companySize': '51-200', 'location': 'Dallas, Texas',
            'profileUrl': 'https://linkedin.com/in/liwei?trk=abc',
        },
    ]
