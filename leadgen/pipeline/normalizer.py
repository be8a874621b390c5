"""
Profile normalizer — raw provider records → NormalizedLead.

Accepted shapes:
  broker (Apollo):      firstName, lastName, title/jobTitle, organization{name, industry, ...}
  enrichment (LinkedIn): fullName, headline, company, industry, url, ...
  search result:         profile_url, _search_title "Jane Doe - Plant Manager - Acme | LinkedIn", _search_snippet
  canonical:             NormalizedLead.to_dict() output

normalize() never raises on a dict and is idempotent:
normalize(normalize(x).to_dict()) == normalize(x).
"""
import re
from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, Optional

from leadgen.services.apify import canonical_profile_url

SCORING_FIELDS = ('icp_score', 'icp_grade', 'icp_rationale')


@dataclass
class NormalizedLead:
    first_name: str = ''
    last_name: str = ''
    full_name: str = ''
    email: str = ''
    title: str = ''
    seniority: str = ''
    company_name: str = ''
    company_industry: str = ''
    company_size: str = ''
    location: str = ''
    profile_url: str = ''
    source_method: str = ''
    enriched: bool = False
    icp_score: Optional[int] = None
    icp_grade: Optional[str] = None
    icp_rationale: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def profile_dict(self) -> Dict[str, Any]:
        """Lead fields without the scoring fields (what the model sees)."""
        d = self.to_dict()
        for name in SCORING_FIELDS + ('enriched',):
            d.pop(name)
        return d

    def apply_score(self, result):
        self.icp_score = result.score
        self.icp_grade = result.grade
        self.icp_rationale = result.rationale


# ── Seniority ────────────────────────────────────────────────────────────────

_SENIORITY_LABELS = {
    'c_suite': 'C-Level',
    'c-suite': 'C-Level',
    'c-level': 'C-Level',
    'owner': 'Owner',
    'founder': 'Founder',
    'partner': 'Partner',
    'vp': 'VP',
    'head': 'Director',
    'director': 'Director',
    'manager': 'Manager',
    'senior': 'Senior',
    'entry': 'Entry',
    'intern': 'Intern',
}

# first match wins, most senior first
_TITLE_SENIORITY = [
    (re.compile(r'\b(chief|ceo|cto|cfo|coo|cio|cmo|(?<!vice )president)\b', re.I), 'C-Level'),
    (re.compile(r'\b(founder|co-founder|cofounder)\b', re.I), 'Founder'),
    (re.compile(r'\bowner\b', re.I), 'Owner'),
    (re.compile(r'\b(vp|svp|evp|vice president)\b', re.I), 'VP'),
    (re.compile(r'\b(director|head of)\b', re.I), 'Director'),
    (re.compile(r'\b(manager|supervisor|superintendent|lead)\b', re.I), 'Manager'),
    (re.compile(r'\b(senior|sr\.?|principal)\b', re.I), 'Senior'),
    (re.compile(r'\b(intern|trainee)\b', re.I), 'Intern'),
]


def infer_seniority(title: str) -> str:
    """Seniority label from job-title keywords, '' when nothing matches."""
    for pattern, label in _TITLE_SENIORITY:
        if title and pattern.search(title):
            return label
    return ''


def _seniority_label(value: str) -> str:
    return _SENIORITY_LABELS.get(value.lower(), value)


# ── Field helpers ────────────────────────────────────────────────────────────

def _text(value) -> str:
    if value is None or isinstance(value, (dict, list)):
        return ''
    return str(value).strip()


def _first(raw: Dict[str, Any], *keys) -> str:
    for key in keys:
        value = _text(raw.get(key))
        if value:
            return value
    return ''


def _organization(raw: Dict[str, Any]) -> Dict[str, Any]:
    for key in ('organization', 'company', 'currentCompany'):
        value = raw.get(key)
        if isinstance(value, dict):
            return value
    return {}


def _location(raw: Dict[str, Any]) -> str:
    location = _first(raw, 'location', 'addressWithCountry', 'geoLocationName')
    if location:
        return location
    parts = [_text(raw.get(k)) for k in ('city', 'state', 'country')]
    return ', '.join(p for p in parts if p)


def _email(raw: Dict[str, Any]) -> str:
    email = _first(raw, 'email', 'emailAddress')
    # Apollo placeholder for locked emails
    if 'not_unlocked' in email or '@' not in email:
        return ''
    return email


def parse_search_title(title: str) -> Dict[str, str]:
    """
    Split a search result title into name / title / company.

    "Jane Doe - Plant Manager - Acme Corp | LinkedIn"
      → {'full_name': 'Jane Doe', 'title': 'Plant Manager', 'company_name': 'Acme Corp'}
    """
    title = re.sub(r'\s*[|·]\s*LinkedIn.*$', '', title or '', flags=re.I).strip()
    parts = [p.strip() for p in re.split(r'\s+[-–—]\s+', title) if p.strip()]
    return {
        'full_name': parts[0] if parts else '',
        'title': parts[1] if len(parts) > 1 else '',
        'company_name': parts[2] if len(parts) > 2 else '',
    }


_SNIPPET_LOCATION = re.compile(r'Location:\s*([^·|\n]+?)(?:\s*[·|]|\.\s|$)', re.I)


def _snippet_location(snippet: str) -> str:
    match = _SNIPPET_LOCATION.search(snippet or '')
    return match.group(1).strip() if match else ''


def _score(value) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


# ── normalize ────────────────────────────────────────────────────────────────

def normalize(raw, source_method: str = None) -> NormalizedLead:
    """Map one raw record (or an already normalized lead) to a NormalizedLead."""
    if isinstance(raw, NormalizedLead):
        lead = replace(raw)
        if source_method:
            lead.source_method = source_method
        return lead
    if not isinstance(raw, dict):
        raw = {}

    org = _organization(raw)
    search = parse_search_title(_text(raw.get('_search_title')))

    first_name = _first(raw, 'first_name', 'firstName')
    last_name = _first(raw, 'last_name', 'lastName')
    full_name = _first(raw, 'full_name', 'fullName', 'name') or search['full_name']
    if full_name and not (first_name or last_name):
        first_name, _, last_name = full_name.partition(' ')
        last_name = last_name.strip()
    if not full_name:
        full_name = f"{first_name} {last_name}".strip()

    title = (_first(raw, 'title', 'jobTitle', 'job_title', 'headline', 'position', 'occupation')
             or search['title'])
    company_name = (_first(raw, 'company_name', 'companyName', 'organization_name')
                    or _text(raw.get('company'))
                    or _text(org.get('name'))
                    or search['company_name'])
    company_industry = (_first(raw, 'company_industry', 'companyIndustry', 'industry')
                        or _text(org.get('industry')))
    company_size = (_first(raw, 'company_size', 'companySize', 'employeeCount')
                    or _text(org.get('estimated_num_employees'))
                    or _text(org.get('employeeCount')))
    location = _location(raw) or _snippet_location(_text(raw.get('_search_snippet')))

    seniority = _first(raw, 'seniority')
    seniority = _seniority_label(seniority) if seniority else infer_seniority(title)

    profile_url = canonical_profile_url(
        _first(raw, 'profile_url', 'linkedin_url', 'linkedinUrl', 'profileUrl', 'url')
    )

    if 'enriched' in raw:
        enriched = bool(raw['enriched'])
    else:
        enriched = bool(raw.get('_enriched', False))

    grade = raw.get('icp_grade')
    rationale = raw.get('icp_rationale')

    return NormalizedLead(
        first_name=first_name,
        last_name=last_name,
        full_name=full_name,
        email=_email(raw),
        title=title,
        seniority=seniority,
        company_name=company_name,
        company_industry=company_industry,
        company_size=company_size,
        location=location,
        profile_url=profile_url,
        source_method=source_method or _text(raw.get('source_method')),
        enriched=enriched,
        icp_score=_score(raw.get('icp_score')),
        icp_grade=_text(grade) or None,
        icp_rationale=_text(rationale) or None,
    )
