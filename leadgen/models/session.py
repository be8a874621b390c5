"""
Session model — Redis-backed pipeline session tracking.

A PipelineSession is one run of the lead pipeline, from the start request to
its terminal outcome. The registry keeps, per session, the latest snapshot and
an append-only log of ProgressEvents that status pollers read.
"""
import json
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from leadgen.config import (
    EVENT_TYPES, TERMINAL_EVENTS, PIPELINE_STAGES, TERMINAL_STAGES,
    SESSION_RUNNING_TTL, SESSION_RETENTION_TTL, SESSION_STALE_AFTER,
)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionClosedError(Exception):
    """Raised when appending to a session that already reached a terminal state."""
    def __init__(self, session_id, status):
        self.session_id = session_id
        self.status = status
        super().__init__(f"Session '{session_id}' is {status} — no further events accepted")


@dataclass
class ProgressEvent:
    """One typed, timestamped observation of pipeline advancement."""
    seq: int
    type: str
    timestamp: str
    payload: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.type in TERMINAL_EVENTS

    def to_dict(self) -> Dict[str, Any]:
        return {
            'seq': self.seq,
            'type': self.type,
            'timestamp': self.timestamp,
            'payload': self.payload,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> 'ProgressEvent':
        return cls(
            seq=d['seq'],
            type=d['type'],
            timestamp=d['timestamp'],
            payload=d.get('payload') or {},
        )


class PipelineSession:
    """
    Handle for one pipeline run.

    Only the orchestrator job that owns the session calls emit()/set_stage();
    everyone else reads through SessionRegistry.get_status().
    """

    def __init__(self, registry: 'SessionRegistry', id: str = None,
                 params: Dict = None, icp: Dict = None):
        self.registry = registry
        self.id = id or str(uuid.uuid4())
        self.status = 'running'
        self.stage = 'created'
        self.created_at = _utcnow()
        self.updated_at = self.created_at
        self.params = params or {}
        self.icp = icp or {}
        self.event_count = 0
        self.latest_event: Optional[ProgressEvent] = None
        self.total_leads: Optional[int] = None
        self.summary = ''

    @property
    def is_terminal(self) -> bool:
        return self.status in ('completed', 'failed')

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'status': self.status,
            'stage': self.stage,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
            'params': self.params,
            'icp': self.icp,
            'event_count': self.event_count,
            'latest_event': self.latest_event.to_dict() if self.latest_event else None,
            'total_leads': self.total_leads,
            'summary': self.summary,
        }

    # ── Writer API (owning orchestrator only) ────────────────────────

    def emit(self, event_type: str, **payload) -> ProgressEvent:
        """Append a ProgressEvent. None-valued payload keys are dropped."""
        return self._append(event_type, payload)

    def _append(self, event_type: str, payload: Dict[str, Any], **changes) -> ProgressEvent:
        """
        Write the event and the resulting snapshot, then adopt the new state.

        The handle is only updated once the registry write succeeded, so a
        failed write leaves it unchanged: the seq is reused by the next event
        and a session whose `completed` write failed can still be failed.
        """
        if self.is_terminal:
            raise SessionClosedError(self.id, self.status)
        if event_type not in EVENT_TYPES:
            raise ValueError(f"Unknown progress event type: {event_type}")

        event = ProgressEvent(
            seq=self.event_count,
            type=event_type,
            timestamp=_utcnow(),
            payload={k: v for k, v in payload.items() if v is not None},
        )
        if event_type == 'completed':
            changes.update(status='completed', stage='completed')
        elif event_type == 'error':
            changes.update(status='failed', stage='failed')
        changes.update(event_count=self.event_count + 1, latest_event=event,
                       updated_at=event.timestamp)

        snapshot = self.to_dict()
        snapshot.update(changes, latest_event=event.to_dict())
        self.registry.append(self.id, event, snapshot)

        for name, value in changes.items():
            setattr(self, name, value)
        return event

    def set_stage(self, stage: str):
        """Record a state-machine transition without emitting an event."""
        if self.is_terminal:
            raise SessionClosedError(self.id, self.status)
        if stage not in PIPELINE_STAGES:
            raise ValueError(f"Unknown pipeline stage: {stage}")
        if stage in TERMINAL_STAGES:
            raise ValueError("Terminal stages are reached through complete() or fail()")
        self.stage = stage
        self.registry.save(self)

    def complete(self, total_leads: int, message: str, **payload) -> ProgressEvent:
        """Emit the single terminal `completed` event."""
        return self._append('completed', dict(payload, total_leads=total_leads, message=message),
                            total_leads=total_leads, summary=message)

    def fail(self, message: str, **payload) -> ProgressEvent:
        """Emit the single terminal `error` event."""
        return self._append('error', dict(payload, message=message, stage=self.stage),
                            summary=message)

    @classmethod
    def _from_dict(cls, registry: 'SessionRegistry', d: Dict) -> 'PipelineSession':
        session = cls.__new__(cls)
        session.registry = registry
        session.id = d['id']
        session.status = d['status']
        session.stage = d.get('stage', 'created')
        session.created_at = d['created_at']
        session.updated_at = d.get('updated_at', d['created_at'])
        session.params = d.get('params', {})
        session.icp = d.get('icp', {})
        session.event_count = d.get('event_count', 0)
        latest = d.get('latest_event')
        session.latest_event = ProgressEvent.from_dict(latest) if latest else None
        session.total_leads = d.get('total_leads')
        session.summary = d.get('summary', '')
        return session


class SessionRegistry:
    """
    Redis-backed session registry.

    Keys:
        leadgen:session:{id}          → JSON blob of the latest session snapshot
        leadgen:session:{id}:events   → list of JSON ProgressEvents (append-only)
        leadgen:sessions              → sorted set of session IDs by creation time

    Both per-session keys carry a TTL: SESSION_RUNNING_TTL while running,
    SESSION_RETENTION_TTL once terminal. Evicted and unknown ids look the same
    to readers: load()/get_status() return None.
    """

    PREFIX = 'leadgen:session'
    INDEX_KEY = 'leadgen:sessions'

    def __init__(self, redis_client=None, running_ttl: int = SESSION_RUNNING_TTL,
                 retention_ttl: int = SESSION_RETENTION_TTL,
                 stale_after: int = SESSION_STALE_AFTER):
        if redis_client is None:
            from leadgen.extensions import redis_client
        self.redis = redis_client
        self.running_ttl = running_ttl
        self.retention_ttl = retention_ttl
        self.stale_after = stale_after

    # ── Redis keys ────────────────────────────────────────────────────

    def _session_key(self, session_id: str) -> str:
        return f'{self.PREFIX}:{session_id}'

    def _events_key(self, session_id: str) -> str:
        return f'{self.PREFIX}:{session_id}:events'

    def _ttl(self, status: str) -> int:
        return self.retention_ttl if status in TERMINAL_STAGES else self.running_ttl

    # ── Writes ────────────────────────────────────────────────────────

    def create(self, params: Dict = None, icp: Dict = None) -> PipelineSession:
        """Create and store a new running session. It is queryable on return."""
        session = PipelineSession(self, params=params, icp=icp)
        self.save(session)

        now = time.time()
        horizon = max(self.running_ttl, self.retention_ttl)
        pipe = self.redis.pipeline()
        pipe.zadd(self.INDEX_KEY, {session.id: now})
        pipe.zremrangebyscore(self.INDEX_KEY, 0, now - horizon)
        pipe.execute()
        return session

    def save(self, session: PipelineSession):
        """Persist the session snapshot."""
        session.updated_at = _utcnow()
        self.redis.setex(
            self._session_key(session.id),
            self._ttl(session.status),
            json.dumps(session.to_dict()),
        )

    def append(self, session_id: str, event: ProgressEvent, snapshot: Dict):
        """
        Append an event and store the snapshot it produces in one MULTI
        transaction. Raises the redis error if the transaction fails.
        """
        ttl = self._ttl(snapshot['status'])
        events_key = self._events_key(session_id)
        pipe = self.redis.pipeline(transaction=True)
        pipe.rpush(events_key, json.dumps(event.to_dict()))
        pipe.expire(events_key, ttl)
        pipe.setex(self._session_key(session_id), ttl, json.dumps(snapshot))
        pipe.execute()

    # ── Reads ─────────────────────────────────────────────────────────

    def load(self, session_id: str) -> Optional[PipelineSession]:
        """Load a session handle, or None if unknown/evicted."""
        data = self.redis.get(self._session_key(session_id))
        if not data:
            return None
        return PipelineSession._from_dict(self, json.loads(data))

    def get_status(self, session_id: str, since: int = 0) -> Optional[Dict]:
        """
        Consistent status snapshot for a poller.

        Snapshot and event slice are read in one MULTI transaction so the
        events returned always form a prefix-consistent slice ending at the
        snapshot's latest event. Returns None for unknown/evicted sessions.
        """
        since = max(0, int(since or 0))
        pipe = self.redis.pipeline(transaction=True)
        pipe.get(self._session_key(session_id))
        pipe.lrange(self._events_key(session_id), since, -1)
        blob, raw_events = pipe.execute()
        if not blob:
            return None

        data = json.loads(blob)
        data.pop('icp', None)
        events = [json.loads(item) for item in raw_events or []]
        return {
            'session_id': data['id'],
            'status': data['status'],
            'stage': data.get('stage', ''),
            'created_at': data['created_at'],
            'updated_at': data.get('updated_at'),
            'params': data.get('params', {}),
            'total_leads': data.get('total_leads'),
            'summary': data.get('summary', ''),
            'stale': self._is_stale(data),
            'latest': data.get('latest_event'),
            'events': events,
            'next_seq': data.get('event_count', since + len(events)),
        }

    def list_recent(self, limit: int = 20) -> List[Dict]:
        """Snapshots of recent sessions, newest first. Evicted ids are pruned."""
        session_ids = self.redis.zrevrange(self.INDEX_KEY, 0, limit - 1)
        sessions = []
        for session_id in session_ids:
            blob = self.redis.get(self._session_key(session_id))
            if not blob:
                self.redis.zrem(self.INDEX_KEY, session_id)
                continue
            data = json.loads(blob)
            data.pop('icp', None)
            sessions.append(data)
        return sessions

    def _is_stale(self, data: Dict) -> bool:
        """Running but silent for longer than stale_after (crashed or stuck worker)."""
        if data.get('status') != 'running':
            return False
        try:
            updated = datetime.fromisoformat(data.get('updated_at') or data['created_at'])
        except (KeyError, ValueError):
            return False
        if updated.tzinfo is None:
            updated = updated.replace(tzinfo=timezone.utc)
        age = (datetime.now(timezone.utc) - updated).total_seconds()
        return age > self.stale_after
