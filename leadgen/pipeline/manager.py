"""
Pipeline Manager — session launch + the RQ job entry point.

launch_session() validates the request, writes the session to Redis and
enqueues run_pipeline(session_id) as a background RQ job. The job builds the
orchestrator from the process-level clients and runs the session to a
terminal state.
"""
import logging

from leadgen.config import PIPELINE_JOB_TIMEOUT, RQ_ASYNC, SCORING_WORKERS
from leadgen.models.session import PipelineSession, SessionRegistry
from leadgen.pipeline.orchestrator import PipelineOrchestrator
from leadgen.pipeline.request import GenerationRequest
from leadgen.pipeline.scoring import ICPScorer, SequentialScoring, ThreadPoolScoring
from leadgen.services.apify import ScrapeBrokerClient, ProfileSearchClient, EnrichmentClient
from leadgen.services.db import LeadStore
from leadgen.services.notifications import notify_session_complete, notify_session_failed

logger = logging.getLogger('pipeline.manager')


class SchedulingError(RuntimeError):
    """The pipeline job could not be enqueued."""


# ── Lazy RQ queue (avoids import-time Redis connection) ──────────────────────

_queue = None

def _get_queue():
    global _queue
    if _queue is None:
        from leadgen.extensions import redis_client
        from rq import Queue
        _queue = Queue('leadgen', connection=redis_client, is_async=RQ_ASYNC)
    return _queue


def get_registry() -> SessionRegistry:
    return SessionRegistry()


# ── Public API ────────────────────────────────────────────────────────────────

def launch_session(body: dict) -> PipelineSession:
    """
    Validate a generation request, create its session and enqueue the job.

    The session is in Redis before this returns, so the id can be polled
    immediately.

    Raises:
        ValidationError: bad request — no session is created.
        SchedulingError: the job could not be enqueued — the session is failed first.
    """
    request = GenerationRequest.from_dict(body)
    session = get_registry().create(params=request.to_params(), icp=request.icp)
    logger.info("Created session %s (method=%s, limit=%d)",
                session.id, request.method, request.result_limit)

    try:
        _get_queue().enqueue(run_pipeline, session.id, job_timeout=PIPELINE_JOB_TIMEOUT)
    except Exception as e:
        logger.error("Failed to enqueue session %s", session.id, exc_info=True)
        session.fail(f"Could not schedule pipeline job: {e}", error_type='scheduling')
        raise SchedulingError(str(e)) from e

    return session


def get_session_status(session_id: str, since: int = 0) -> dict:
    """Status snapshot + events with seq >= since, or None if unknown/evicted."""
    return get_registry().get_status(session_id, since=since)


def list_sessions(limit: int = 20) -> list:
    return get_registry().list_recent(limit=limit)


# ── Pipeline runner (enqueued via RQ) ─────────────────────────────────────────

def build_orchestrator(registry: SessionRegistry = None) -> PipelineOrchestrator:
    """Wire the orchestrator to the process-level Apify / OpenAI clients."""
    from leadgen import extensions

    apify = extensions.apify_client
    if SCORING_WORKERS > 1:
        strategy = ThreadPoolScoring(max_workers=SCORING_WORKERS)
    else:
        strategy = SequentialScoring()

    return PipelineOrchestrator(
        registry=registry or get_registry(),
        broker=ScrapeBrokerClient(apify),
        search=ProfileSearchClient(apify),
        enrichment=EnrichmentClient(apify),
        scorer=ICPScorer(extensions.openai_client),
        store=LeadStore(),
        scoring_strategy=strategy,
    )


def run_pipeline(session_id: str):
    """
    RQ job: run one session to completion, then send the Slack notification.
    """
    from leadgen.database import init_db
    from leadgen.logging_config import configure_logging

    if RQ_ASYNC:
        configure_logging()
        init_db()

    session = build_orchestrator().run_session(session_id)
    if session is None:
        return

    if session.status == 'completed':
        grade_counts = session.latest_event.payload.get('grade_counts') if session.latest_event else None
        notify_session_complete(session, grade_counts=grade_counts)
    elif session.status == 'failed':
        notify_session_failed(session, session.summary)
