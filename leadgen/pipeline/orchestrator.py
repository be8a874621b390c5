"""
Pipeline Orchestrator — drives one session through the lead pipeline:

  created → source_searching → [enriching] → normalizing → scoring → persisting → completed

`failed` is reachable from every non-terminal state. Each transition emits
typed ProgressEvents on the session; exactly one terminal event (`completed`
or `error`) is emitted, always last.

Provider clients, the scorer and the lead store are injected; this module
never touches process-level clients.
"""
import logging
import time
from collections import Counter
from typing import Any, Dict, List

from leadgen.config import METHOD_BROKER, METHOD_SEARCH_ENRICH
from leadgen.models.session import PipelineSession, SessionClosedError
from leadgen.pipeline.icp import ICPConfig, load_default_icp
from leadgen.pipeline.normalizer import NormalizedLead, normalize
from leadgen.pipeline.request import GenerationRequest, ValidationError
from leadgen.pipeline.scoring import SequentialScoring
from leadgen.services.apify import canonical_profile_url
from leadgen.services.db import PersistenceError
from leadgen.services.polling import ProviderError, ProviderTimeoutError

logger = logging.getLogger('pipeline.orchestrator')


class PipelineOrchestrator:

    def __init__(self, registry, broker, search, enrichment, scorer, store,
                 scoring_strategy=None, clock=time.monotonic):
        self.registry = registry
        self.broker = broker
        self.search = search
        self.enrichment = enrichment
        self.scorer = scorer
        self.store = store
        self.scoring_strategy = scoring_strategy or SequentialScoring()
        self.clock = clock

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def run_session(self, session_id: str):
        """Load a session from the registry and run it. None if it is gone."""
        session = self.registry.load(session_id)
        if session is None:
            logger.error("Session %s not found", session_id)
            return None
        if session.is_terminal:
            logger.warning("Session %s is already %s — not running again", session_id, session.status)
            return session
        return self.run(session)

    def run(self, session: PipelineSession) -> PipelineSession:
        """
        Run the session to a terminal state and return it.

        Unexpected exceptions become a terminal `error` event so a poller never
        sees a session stuck in `running` because of a bug.
        """
        log_extra = {'session_id': session.id}
        logger.info("Starting session %s (method=%s)", session.id,
                    session.params.get('method'), extra=log_extra)
        try:
            self._run(session)
        except SessionClosedError:
            raise
        except Exception as e:
            logger.error("Session %s crashed in stage '%s'", session.id, session.stage,
                         exc_info=True, extra=log_extra)
            if not session.is_terminal:
                session.fail(f"Unexpected error: {e}", error_type='internal')

        logger.info("Session %s finished — status=%s, leads=%s", session.id,
                    session.status, session.total_leads, extra=log_extra)
        return session

    def _run(self, session: PipelineSession):
        session.emit('started', method=session.params.get('method'),
                     message='Lead generation started')

        # ── created: validate before any network I/O ──
        try:
            request = GenerationRequest.from_dict({**session.params, 'icp': session.icp or None})
        except ValidationError as e:
            session.fail(str(e), error_type='validation')
            return
        icp = ICPConfig.from_dict(request.icp) if request.icp else load_default_icp()

        # ── source_searching ──
        session.set_stage('source_searching')
        session.emit('source_search_started', method=request.method,
                     message=f"Searching for {', '.join(request.role_terms)} in {', '.join(request.location_terms)}")
        try:
            candidates = self._source(session, request)
        except ProviderTimeoutError as e:
            session.fail(f"Lead search timed out: {e}", error_type='provider_timeout')
            return
        except ProviderError as e:
            session.fail(f"Lead search failed: {e}", error_type='provider_failed')
            return
        session.emit('profiles_found', count=len(candidates),
                     message=f"Found {len(candidates)} profiles")

        # ── enriching (search method only) ──
        if request.method == METHOD_SEARCH_ENRICH and candidates:
            session.set_stage('enriching')
            session.emit('enrichment_started', total=len(candidates),
                         message=f"Enriching {len(candidates)} profiles")
            candidates = self._enrich(session, candidates)

        # ── normalizing ──
        session.set_stage('normalizing')
        session.emit('processing_started', total=len(candidates),
                     message=f"Processing {len(candidates)} profiles")
        leads = [normalize(candidate, request.method) for candidate in candidates]

        # ── scoring ──
        session.set_stage('scoring')
        failures = self._score(session, leads, icp)

        # ── persisting ──
        session.set_stage('persisting')
        session.emit('persisting_started', total=len(leads), message='Saving leads')
        try:
            saved = self.store.save(session.id, leads)
        except PersistenceError as e:
            session.fail(str(e), error_type='persistence')
            return
        session.emit('persisting_completed', saved=saved, message=f"Saved {saved} leads")

        # ── completed ──
        grades = Counter(lead.icp_grade for lead in leads if lead.icp_grade)
        session.complete(
            len(leads),
            _summary(leads, failures),
            grade_counts=dict(grades),
            scoring_failures=failures,
            average_score=_average_score(leads),
        )

    # ------------------------------------------------------------------
    # Stages
    # ------------------------------------------------------------------

    def _heartbeat(self, session: PipelineSession, stage: str):
        def on_attempt(attempt: int, max_attempts: int):
            session.emit('heartbeat', stage=stage, attempt=attempt, max_attempts=max_attempts,
                         message=f"Waiting for provider ({attempt}/{max_attempts})")
        return on_attempt

    def _source(self, session: PipelineSession, request: GenerationRequest) -> List[Dict[str, Any]]:
        """Raw candidates from the request's sourcing method. Raises ProviderError."""
        on_attempt = self._heartbeat(session, 'source_searching')

        if request.method == METHOD_BROKER:
            handle = self.broker.submit(self.broker.build_input(request))
            self.broker.poll_until_terminal(handle, on_attempt=on_attempt)
            return self.broker.fetch_results(handle, limit=request.result_limit)

        handle = self.search.submit(self.search.build_input(request))
        self.search.poll_until_terminal(handle, on_attempt=on_attempt)
        items = self.search.fetch_results(handle)
        return self.search.extract_profiles(items, request.result_limit)

    def _enrich(self, session: PipelineSession, candidates: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Merge enrichment records into the search candidates by profile URL.

        Degrades instead of failing: on provider timeout/failure every candidate
        stays unenriched, and candidates the dataset did not return stay
        unenriched too. Both cases emit a `warning`.
        """
        total = len(candidates)
        urls = [c['profile_url'] for c in candidates]
        try:
            handle = self.enrichment.submit(self.enrichment.build_input(urls))
            self.enrichment.poll_until_terminal(handle, on_attempt=self._heartbeat(session, 'enriching'))
            records = self.enrichment.fetch_results(handle, limit=total)
        except ProviderError as e:
            logger.warning("Enrichment failed for session %s: %s", session.id, e,
                           extra={'session_id': session.id})
            session.emit('warning', stage='enriching',
                         message=f"Enrichment failed, continuing with search results: {e}")
            session.emit('enrichment_completed', enriched=0, total=total)
            return candidates

        by_url = {}
        for record in records:
            if not isinstance(record, dict):
                continue
            url = canonical_profile_url(
                record.get('url') or record.get('profileUrl') or record.get('linkedinUrl') or ''
            )
            if url:
                by_url.setdefault(url, record)

        merged = []
        enriched = 0
        for candidate in candidates:
            record = by_url.get(candidate['profile_url'])
            if record is None:
                merged.append(candidate)
                continue
            enriched += 1
            merged.append({**candidate, **record,
                           'profile_url': candidate['profile_url'], '_enriched': True})
            session.emit('profile_enriched', enriched=enriched, total=total,
                         progress=round(enriched / total, 3),
                         profile_url=candidate['profile_url'])

        missing = total - enriched
        if missing:
            session.emit('warning', stage='enriching', missing=missing,
                         message=f"{missing} of {total} profiles were not enriched; using search data")
        session.emit('enrichment_completed', enriched=enriched, total=total,
                     message=f"Enriched {enriched} of {total} profiles")
        return merged

    def _score(self, session: PipelineSession, leads: List[NormalizedLead], icp: ICPConfig) -> int:
        """Score every lead in place. Returns how many got the default failure score."""
        total = len(leads)
        session.emit('scoring_started', total=total,
                     message=f"Scoring {total} leads against the ICP")
        if total and not self.scorer.available:
            session.emit('warning', stage='scoring',
                         message='No scoring model configured; leads receive the default failure score')

        started = self.clock()
        failures = 0
        for index, lead, result in self.scoring_strategy.score_all(self.scorer, leads, icp):
            lead.apply_score(result)
            if result.failed:
                failures += 1
            done = index + 1
            elapsed = self.clock() - started
            session.emit('lead_scored', scored=done, total=total,
                         progress=round(done / total, 3),
                         eta_seconds=round(elapsed / done * (total - done), 1),
                         name=lead.full_name, score=result.score, grade=result.grade)
        return failures


def _average_score(leads: List[NormalizedLead]):
    scores = [lead.icp_score for lead in leads if lead.icp_score is not None]
    if not scores:
        return None
    return round(sum(scores) / len(scores), 1)


def _summary(leads: List[NormalizedLead], failures: int) -> str:
    """One-line human summary for the completed event and notifications."""
    if not leads:
        return 'No leads found for these search terms'
    parts = [f"Generated {len(leads)} leads"]
    top = sum(1 for lead in leads if lead.icp_grade in ('A+', 'A'))
    if top:
        parts.append(f"{top} graded A or better")
    if failures:
        parts.append(f"{failures} could not be scored")
    return ', '.join(parts)
