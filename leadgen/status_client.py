"""
HTTP client for the lead generation API — start a session and follow it.

A freshly started session can briefly look unknown to a poller (e.g. behind a
load balancer with a lagging replica), so a 404 is retried a bounded number of
times before it is treated as permanent.
"""
import logging
import time
from typing import Any, Callable, Dict, List, Optional

import requests

logger = logging.getLogger('leadgen.status_client')

TERMINAL_STATUSES = ('completed', 'failed')


class StatusClientError(Exception):
    """The API rejected a request or answered with an unexpected status."""


class SessionNotFoundError(StatusClientError):
    """The session stayed unknown after every not-found retry."""
    def __init__(self, session_id, attempts):
        self.session_id = session_id
        self.attempts = attempts
        super().__init__(f"Session {session_id} not found after {attempts} attempts")


class LeadGenClient:

    def __init__(self, base_url: str, http: requests.Session = None,
                 poll_interval: float = 2.0, not_found_retries: int = 10,
                 timeout: float = 30, sleep: Callable[[float], None] = time.sleep):
        self.base_url = base_url.rstrip('/')
        self.http = http or requests.Session()
        self.poll_interval = poll_interval
        self.not_found_retries = not_found_retries
        self.timeout = timeout
        self.sleep = sleep

    def start(self, body: Dict[str, Any]) -> str:
        """POST a generation request; returns the session id."""
        resp = self.http.post(f"{self.base_url}/api/generate-leads", json=body, timeout=self.timeout)
        data = _json(resp)
        if resp.status_code != 202:
            raise StatusClientError(data.get('message') or f"HTTP {resp.status_code}")
        return data['session_id']

    def status(self, session_id: str, since: int = 0) -> Optional[Dict[str, Any]]:
        """One status poll. None when the API answers not_found."""
        resp = self.http.get(
            f"{self.base_url}/api/generate-leads/status",
            params={'session_id': session_id, 'since': since},
            timeout=self.timeout,
        )
        if resp.status_code == 404:
            return None
        data = _json(resp)
        if resp.status_code != 200:
            raise StatusClientError(data.get('message') or f"HTTP {resp.status_code}")
        return data

    def follow(self, session_id: str,
               on_event: Callable[[Dict[str, Any]], None] = None) -> Dict[str, Any]:
        """
        Poll until the session is terminal. Each event is passed to on_event
        exactly once. Returns the final status.

        Raises:
            SessionNotFoundError: more than not_found_retries consecutive 404s.
        """
        since = 0
        misses = 0
        while True:
            data = self.status(session_id, since=since)
            if data is None:
                misses += 1
                if misses > self.not_found_retries:
                    raise SessionNotFoundError(session_id, misses)
                logger.info("Session %s not found yet (%d/%d)", session_id, misses, self.not_found_retries)
                self.sleep(self.poll_interval)
                continue

            misses = 0
            for event in data.get('events', []):
                if on_event:
                    on_event(event)
            since = data.get('next_seq', since + len(data.get('events', [])))

            if data.get('status') in TERMINAL_STATUSES:
                return data
            self.sleep(self.poll_interval)

    def leads(self, session_id: str) -> List[Dict[str, Any]]:
        resp = self.http.get(f"{self.base_url}/api/leads",
                             params={'session_id': session_id}, timeout=self.timeout)
        data = _json(resp)
        if resp.status_code != 200:
            raise StatusClientError(data.get('message') or f"HTTP {resp.status_code}")
        return data.get('leads', [])


def _json(resp) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}
