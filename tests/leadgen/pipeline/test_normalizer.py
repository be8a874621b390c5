"""Tests for leadgen.pipeline.normalizer — raw records → NormalizedLead."""
import pytest

from leadgen.pipeline.normalizer import (
    NormalizedLead, normalize, infer_seniority, parse_search_title,
)


class TestApolloShape:

    def test_maps_organization_fields(self, apollo_records):
        lead = normalize(apollo_records[0], 'broker')
        assert lead.first_name == 'Jane'
        assert lead.last_name == 'Doe'
        assert lead.full_name == 'Jane Doe'
        assert lead.title == 'Plant Manager'
        assert lead.company_name == 'Acme Manufacturing'
        assert lead.company_industry == 'manufacturing'
        assert lead.company_size == '350'
        assert lead.location == 'Houston, Texas, United States'
        assert lead.profile_url == 'https://www.linkedin.com/in/janedoe'
        assert lead.source_method == 'broker'
        assert lead.seniority == 'Manager'

    def test_locked_email_dropped(self, apollo_records):
        assert normalize(apollo_records[1], 'broker').email == ''

    def test_camel_case_flat_record(self, apollo_records):
        lead = normalize(apollo_records[2], 'broker')
        assert lead.first_name == 'Li'
        assert lead.last_name == 'Wei'
        assert lead.title == 'Maintenance Supervisor'
        assert lead.company_size == '51-200'
        assert lead.profile_url == 'https://www.linkedin.com/in/liwei'
        assert lead.seniority == 'Manager'


class TestLinkedInShape:

    def test_enriched_profile(self):
        raw = {
            'fullName': 'Maria Garcia', 'headline': 'Director of Operations at Forge',
            'company': 'Forge Robotics', 'industry': 'Robotics',
            'addressWithCountry': 'Monterrey, Mexico', 'url': 'https://mx.linkedin.com/in/mgarcia/',
            '_enriched': True,
        }
        lead = normalize(raw, 'search_enrich')
        assert lead.first_name == 'Maria'
        assert lead.last_name == 'Garcia'
        assert lead.title == 'Director of Operations at Forge'
        assert lead.company_name == 'Forge Robotics'
        assert lead.location == 'Monterrey, Mexico'
        assert lead.profile_url == 'https://www.linkedin.com/in/mgarcia'
        assert lead.seniority == 'Director'
        assert lead.enriched is True


class TestSearchShape:

    def test_parses_search_title(self):
        raw = {
            'profile_url': 'https://www.linkedin.com/in/janedoe',
            '_search_title': 'Jane Doe - Plant Manager - Acme Corp | LinkedIn',
            '_search_snippet': 'Location: Houston · 500+ connections',
        }
        lead = normalize(raw, 'search_enrich')
        assert lead.full_name == 'Jane Doe'
        assert lead.first_name == 'Jane'
        assert lead.title == 'Plant Manager'
        assert lead.company_name == 'Acme Corp'
        assert lead.location == 'Houston'
        assert lead.enriched is False

    def test_enriched_fields_win_over_search_title(self):
        raw = {
            'profile_url': 'https://www.linkedin.com/in/janedoe',
            '_search_title': 'Jane Doe - Engineer - Old Co | LinkedIn',
            'fullName': 'Jane A. Doe', 'headline': 'Plant Manager', 'company': 'Acme',
        }
        lead = normalize(raw, 'search_enrich')
        assert lead.full_name == 'Jane A. Doe'
        assert lead.title == 'Plant Manager'
        assert lead.company_name == 'Acme'

    @pytest.mark.parametrize('title,expected', [
        ('Jane Doe - Plant Manager - Acme | LinkedIn', ('Jane Doe', 'Plant Manager', 'Acme')),
        ('Jane Doe – CTO | LinkedIn', ('Jane Doe', 'CTO', '')),
        ('Jane Doe', ('Jane Doe', '', '')),
        ('', ('', '', '')),
    ])
    def test_parse_search_title(self, title, expected):
        parsed = parse_search_title(title)
        assert (parsed['full_name'], parsed['title'], parsed['company_name']) == expected


class TestMissingFields:

    def test_empty_record(self):
        lead = normalize({}, 'broker')
        assert lead == NormalizedLead(source_method='broker')

    def test_none_values_tolerated(self):
        lead = normalize({'firstName': None, 'lastName': 'Smith', 'organization': None, 'title': None})
        assert lead.full_name == 'Smith'
        assert lead.company_name == ''

    def test_non_dict_input(self):
        assert normalize(None, 'broker') == NormalizedLead(source_method='broker')

    def test_full_name_only_is_split(self):
        lead = normalize({'name': 'Ana Maria Souza'})
        assert (lead.first_name, lead.last_name) == ('Ana', 'Maria Souza')


class TestSeniority:

    @pytest.mark.parametrize('title,expected', [
        ('Chief Operating Officer', 'C-Level'),
        ('CEO & Founder', 'C-Level'),
        ('Co-Founder', 'Founder'),
        ('VP Operations', 'VP'),
        ('Vice President, Manufacturing', 'VP'),
        ('Head of Maintenance', 'Director'),
        ('Plant Manager', 'Manager'),
        ('Senior Process Engineer', 'Senior'),
        ('Engineering Intern', 'Intern'),
        ('Process Engineer', ''),
        ('', ''),
    ])
    def test_infer_from_title(self, title, expected):
        assert infer_seniority(title) == expected

    def test_record_seniority_wins(self):
        lead = normalize({'title': 'Plant Manager', 'seniority': 'c_suite'})
        assert lead.seniority == 'C-Level'


class TestIdempotence:

    @pytest.mark.parametrize('index', [0, 1, 2])
    def test_normalize_twice_equals_once(self, apollo_records, index):
        once = normalize(apollo_records[index], 'broker')
        assert normalize(once.to_dict(), 'broker') == once
        assert normalize(once) == once

    def test_scoring_fields_preserved(self, make_lead):
        lead = make_lead(icp_score=77, icp_grade='B+', icp_rationale='ok', enriched=True)
        assert normalize(lead.to_dict()) == lead

    def test_search_candidate_idempotent(self):
        raw = {
            'profile_url': 'https://www.linkedin.com/in/x',
            '_search_title': 'X Y - Head of Ops - Z | LinkedIn',
            '_search_snippet': 'Location: Paris',
        }
        once = normalize(raw, 'search_enrich')
        assert normalize(once.to_dict()) == once

    def test_profile_dict_excludes_scoring(self, make_lead):
        d = make_lead(icp_score=5).profile_dict()
        assert 'icp_score' not in d
        assert 'enriched' not in d
        assert d['full_name'] == 'Jane Doe'
