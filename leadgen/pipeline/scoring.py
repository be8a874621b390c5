"""
ICP scoring — one model call per lead, defensive parse, default failure score.

Scoring never raises: a missing client, a network error, a non-JSON reply or
a reply without a numeric `score` all become DEFAULT_FAILURE so one bad lead
cannot fail the session.

Batch scoring is a strategy object. Both strategies yield results in lead
order on the caller's thread, so progress events keep a single writer.
"""
import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Tuple

from leadgen.config import ICP_GRADE_BANDS, ICP_GRADES, ICP_SCORING_MODEL
from leadgen.pipeline.icp import ICPConfig, render_prompt
from leadgen.services.openai_client import request_icp_score

logger = logging.getLogger('pipeline.scoring')


@dataclass(frozen=True)
class ScoreResult:
    score: int
    grade: str
    rationale: str
    failed: bool = False


DEFAULT_FAILURE = ScoreResult(score=0, grade='D', rationale='Error during scoring', failed=True)


def grade_for_score(score: float) -> str:
    """Letter grade of the band containing score."""
    for grade, lower in ICP_GRADE_BANDS:
        if score >= lower:
            return grade
    return ICP_GRADES[-1]


def parse_score_response(data: Dict[str, Any]) -> ScoreResult:
    """
    Model JSON → ScoreResult.

    `score` is required and must be numeric (clamped to 0..100). A missing or
    unknown grade is derived from the score. Raises ValueError otherwise.
    """
    if not isinstance(data, dict):
        raise ValueError("Score response is not an object")

    raw_score = data.get('score')
    if raw_score is None or isinstance(raw_score, bool):
        raise ValueError("Score response has no numeric score")
    score = float(raw_score)
    if math.isnan(score):
        raise ValueError("Score is NaN")
    score = int(round(min(100.0, max(0.0, score))))

    grade = str(data.get('grade') or '').strip().upper()
    if grade not in ICP_GRADES:
        grade = grade_for_score(score)

    rationale = data.get('rationale') or data.get('reasoning') or 'No rationale provided'
    return ScoreResult(score=score, grade=grade, rationale=str(rationale).strip())


class ICPScorer:
    """Scores one NormalizedLead against an ICPConfig."""

    def __init__(self, client=None, model: str = ICP_SCORING_MODEL, request_fn=request_icp_score):
        self.client = client
        self.model = model
        self.request_fn = request_fn

    @property
    def available(self) -> bool:
        return self.client is not None

    def score(self, lead, icp: ICPConfig) -> ScoreResult:
        if self.client is None:
            return DEFAULT_FAILURE

        prompt = render_prompt(icp.prompt_template, lead, icp)
        try:
            data = self.request_fn(prompt, client=self.client, model=self.model)
            return parse_score_response(data)
        except Exception as e:
            logger.warning("Scoring failed for %s: %s", lead.full_name or lead.profile_url or '?', e)
            return DEFAULT_FAILURE


# ── Batch strategies ─────────────────────────────────────────────────────────

class SequentialScoring:
    """One lead at a time (default)."""

    def score_all(self, scorer: ICPScorer, leads: List, icp: ICPConfig) -> Iterator[Tuple[int, Any, ScoreResult]]:
        for index, lead in enumerate(leads):
            yield index, lead, scorer.score(lead, icp)


class ThreadPoolScoring:
    """
    Concurrent model calls; results are still yielded in lead order, each as
    soon as it and every earlier lead are done.
    """

    def __init__(self, max_workers: int = 4):
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.max_workers = max_workers

    def score_all(self, scorer: ICPScorer, leads: List, icp: ICPConfig) -> Iterator[Tuple[int, Any, ScoreResult]]:
        if not leads:
            return
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            future_to_index = {
                pool.submit(scorer.score, lead, icp): index
                for index, lead in enumerate(leads)
            }
            done = {}
            next_index = 0
            for future in as_completed(future_to_index):
                done[future_to_index[future]] = future.result()
                while next_index in done:
                    yield next_index, leads[next_index], done.pop(next_index)
                    next_index += 1
