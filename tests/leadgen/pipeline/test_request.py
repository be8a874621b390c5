"""Tests for leadgen.pipeline.request — GenerationRequest parsing and validation."""
import pytest

from leadgen.config import DEFAULT_RESULT_LIMIT, MAX_RESULT_LIMIT
from leadgen.pipeline.request import GenerationRequest, ValidationError


def _body(**overrides):
    body = {'method': 'broker', 'roleTerms': ['Plant Manager'], 'locationTerms': ['Texas']}
    body.update(overrides)
    return body


class TestFromDict:

    def test_minimal_request(self):
        req = GenerationRequest.from_dict(_body())
        assert req.method == 'broker'
        assert req.role_terms == ['Plant Manager']
        assert req.location_terms == ['Texas']
        assert req.industry_terms == []
        assert req.company_size_buckets == []
        assert req.result_limit == DEFAULT_RESULT_LIMIT
        assert req.icp is None

    def test_snake_case_keys(self):
        req = GenerationRequest.from_dict({
            'method': 'search_enrich', 'role_terms': ['CTO'], 'location_terms': ['Berlin'],
            'industry_terms': ['SaaS'], 'company_size_buckets': ['51-200'], 'result_limit': 5,
        })
        assert req.method == 'search_enrich'
        assert req.industry_terms == ['SaaS']
        assert req.company_size_buckets == ['51-200']
        assert req.result_limit == 5

    def test_legacy_field_names_and_method_aliases(self):
        req = GenerationRequest.from_dict({
            'method': 'google_apify', 'jobTitles': ['CTO'], 'locations': ['Berlin'],
            'industries': ['SaaS'], 'companySizes': ['5000+'], 'limit': 10,
        })
        assert req.method == 'search_enrich'
        assert req.company_size_buckets == ['5000+']
        assert GenerationRequest.from_dict(_body(method='apollo')).method == 'broker'

    def test_comma_separated_terms(self):
        req = GenerationRequest.from_dict(_body(roleTerms='CTO, VP Engineering,'))
        assert req.role_terms == ['CTO', 'VP Engineering']

    @pytest.mark.parametrize('overrides', [
        {'method': None},
        {'method': 'linkedin_magic'},
        {'roleTerms': []},
        {'roleTerms': ['  ']},
        {'locationTerms': None},
        {'roleTerms': [1, 2]},
        {'roleTerms': {'a': 1}},
        {'resultLimit': 0},
        {'resultLimit': MAX_RESULT_LIMIT + 1},
        {'resultLimit': 'lots'},
        {'resultLimit': True},
        {'icp': 'not an object'},
    ])
    def test_invalid_requests(self, overrides):
        with pytest.raises(ValidationError):
            GenerationRequest.from_dict(_body(**overrides))

    def test_non_dict_body(self):
        with pytest.raises(ValidationError):
            GenerationRequest.from_dict(['method'])

    def test_icp_is_validated_and_completed(self):
        req = GenerationRequest.from_dict(_body(icp={'targetIndustries': ['Robotics']}))
        assert req.icp['target_industries'] == ['Robotics']
        assert req.icp['prompt_template']  # filled from the default profile

    def test_icp_with_bad_weights_rejected(self):
        icp = {'scoring_criteria': {'role': {'enabled': True, 'weight': 60}}}
        with pytest.raises(ValidationError, match='sum to 100'):
            GenerationRequest.from_dict(_body(icp=icp))


class TestToParams:

    def test_excludes_icp(self):
        req = GenerationRequest.from_dict(_body(icp={}))
        params = req.to_params()
        assert 'icp' not in params
        assert params['role_terms'] == ['Plant Manager']

    def test_params_round_trip(self):
        req = GenerationRequest.from_dict(_body(industryTerms=['Energy'], resultLimit=7))
        again = GenerationRequest.from_dict(req.to_params())
        assert again == req
