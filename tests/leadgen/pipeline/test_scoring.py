"""Tests for leadgen.pipeline.scoring — ICPScorer, response parsing, batch strategies."""
import threading
import time
import pytest
from unittest.mock import MagicMock

from leadgen.pipeline.icp import load_default_icp
from leadgen.pipeline.scoring import (
    ICPScorer, ScoreResult, DEFAULT_FAILURE, SequentialScoring, ThreadPoolScoring,
    grade_for_score, parse_score_response,
)


@pytest.fixture
def icp():
    return load_default_icp()


class TestGradeForScore:

    @pytest.mark.parametrize('score,grade', [
        (100, 'A+'), (95, 'A+'), (94, 'A'), (85, 'A'), (84, 'B+'), (75, 'B+'),
        (65, 'B'), (55, 'C+'), (45, 'C'), (35, 'D+'), (34, 'D'), (0, 'D'),
    ])
    def test_bands(self, score, grade):
        assert grade_for_score(score) == grade


class TestParseScoreResponse:

    def test_full_response(self):
        result = parse_score_response({'score': 82, 'grade': 'b+', 'rationale': 'Good fit'})
        assert result == ScoreResult(score=82, grade='B+', rationale='Good fit')
        assert result.failed is False

    def test_reasoning_key_accepted(self):
        assert parse_score_response({'score': 50, 'reasoning': 'meh'}).rationale == 'meh'

    def test_missing_grade_derived(self):
        assert parse_score_response({'score': 88}).grade == 'A'

    def test_unknown_grade_derived(self):
        assert parse_score_response({'score': 40, 'grade': 'high_fit'}).grade == 'D+'

    def test_score_clamped(self):
        assert parse_score_response({'score': 140}).score == 100
        assert parse_score_response({'score': -5}).score == 0

    def test_numeric_string_and_float(self):
        assert parse_score_response({'score': '72'}).score == 72
        assert parse_score_response({'score': 72.6}).score == 73

    @pytest.mark.parametrize('data', [
        {},
        {'score': None},
        {'score': 'high'},
        {'score': True},
        {'score': float('nan')},
        {'score': [80]},
        'not a dict',
    ])
    def test_invalid_responses_raise(self, data):
        with pytest.raises((ValueError, TypeError)):
            parse_score_response(data)


class TestICPScorer:

    def test_scores_lead(self, make_lead, icp):
        request_fn = MagicMock(return_value={'score': 91, 'grade': 'A', 'rationale': 'Ideal'})
        scorer = ICPScorer(client=MagicMock(), model='m', request_fn=request_fn)

        result = scorer.score(make_lead(), icp)

        assert result == ScoreResult(91, 'A', 'Ideal')
        prompt = request_fn.call_args[0][0]
        assert 'Jane Doe' in prompt
        assert request_fn.call_args[1]['model'] == 'm'

    def test_no_client_gives_default_failure_without_call(self, make_lead, icp):
        request_fn = MagicMock()
        scorer = ICPScorer(client=None, request_fn=request_fn)
        assert scorer.available is False
        assert scorer.score(make_lead(), icp) == DEFAULT_FAILURE
        request_fn.assert_not_called()

    def test_model_error_gives_default_failure(self, make_lead, icp):
        scorer = ICPScorer(client=MagicMock(), request_fn=MagicMock(side_effect=RuntimeError('503')))
        result = scorer.score(make_lead(), icp)
        assert result is DEFAULT_FAILURE
        assert (result.score, result.grade, result.rationale) == (0, 'D', 'Error during scoring')

    def test_unparseable_reply_gives_default_failure(self, make_lead, icp):
        scorer = ICPScorer(client=MagicMock(), request_fn=MagicMock(return_value={'grade': 'A'}))
        assert scorer.score(make_lead(), icp) == DEFAULT_FAILURE


class _ScriptedScorer:
    """Scorer double: per-lead delays and scores, records the calling threads."""

    available = True

    def __init__(self, delays=None):
        self.delays = delays or {}
        self.threads = set()
        self.lock = threading.Lock()

    def score(self, lead, icp):
        with self.lock:
            self.threads.add(threading.get_ident())
        time.sleep(self.delays.get(lead.full_name, 0))
        if lead.full_name == 'bad':
            return DEFAULT_FAILURE
        return ScoreResult(len(lead.full_name), 'D', lead.full_name)


class TestStrategies:

    def test_sequential_in_order(self, make_lead, icp):
        leads = [make_lead(full_name=n) for n in ('a', 'bb', 'bad')]
        results = list(SequentialScoring().score_all(_ScriptedScorer(), leads, icp))
        assert [i for i, _, _ in results] == [0, 1, 2]
        assert results[2][2] is DEFAULT_FAILURE

    def test_thread_pool_yields_in_lead_order(self, make_lead, icp):
        leads = [make_lead(full_name=n) for n in ('slow', 'b', 'c', 'd')]
        scorer = _ScriptedScorer(delays={'slow': 0.2})
        results = list(ThreadPoolScoring(max_workers=4).score_all(scorer, leads, icp))
        assert [i for i, _, _ in results] == [0, 1, 2, 3]
        assert [lead.full_name for _, lead, _ in results] == ['slow', 'b', 'c', 'd']
        assert [r.rationale for _, _, r in results] == ['slow', 'b', 'c', 'd']

    def test_thread_pool_consumer_runs_on_caller_thread(self, make_lead, icp):
        leads = [make_lead(full_name=str(i)) for i in range(6)]
        consumer_threads = set()
        for _ in ThreadPoolScoring(max_workers=3).score_all(_ScriptedScorer(), leads, icp):
            consumer_threads.add(threading.get_ident())
        assert consumer_threads == {threading.get_ident()}

    def test_thread_pool_empty(self, icp):
        assert list(ThreadPoolScoring().score_all(_ScriptedScorer(), [], icp)) == []

    def test_thread_pool_rejects_zero_workers(self):
        with pytest.raises(ValueError):
            ThreadPoolScoring(max_workers=0)
