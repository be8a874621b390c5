"""
ICP configuration — weighted criteria, targeting rules and the scoring prompt.

The default profile lives in icp_config.yaml next to this module (hardcoded
fallback if the file is missing). A request may carry its own profile; missing
fields fall back to the default.
"""
import copy
import json
import logging
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List

import yaml

from leadgen.pipeline.request import ValidationError

logger = logging.getLogger('pipeline.icp')


# ── Default config (YAML with hardcoded fallback) ────────────────────────────

_icp_config = None

DEFAULT_PROMPT_TEMPLATE = """Analyze this lead profile and provide an ICP score from 0-100 based on how well they match our ideal customer profile.

Lead Profile:
{profile_json}

Target ICP:
- Industries: {target_industries}
- Roles: {target_roles}
- Company Sizes: {target_company_sizes}
- Locations: {target_locations}
- Seniority: {target_seniority}

Scoring Criteria (weights):
{scoring_criteria}

Respond in JSON: {"score": <0-100>, "grade": "A+|A|B+|B|C+|C|D+|D", "rationale": "<short explanation>"}"""


def _default_config():
    """Hardcoded fallback if YAML is missing."""
    return {
        'version': 'default',
        'scoring_criteria': {
            'job_title': {'enabled': True, 'weight': 25},
            'company_size': {'enabled': True, 'weight': 20},
            'industry': {'enabled': True, 'weight': 20},
            'location': {'enabled': True, 'weight': 15},
            'seniority': {'enabled': True, 'weight': 20},
        },
        'target_industries': ['Manufacturing', 'Industrial', 'Automotive', 'Energy'],
        'target_titles': ['Operations Manager', 'Plant Manager', 'Maintenance Manager',
                          'Director of Operations', 'VP Operations'],
        'target_company_sizes': ['51-200', '201-500', '501-1000', '1001-5000', '5000+'],
        'target_locations': ['United States', 'Canada', 'United Kingdom'],
        'target_seniority': ['Manager', 'Director', 'VP', 'C-Level'],
        'prompt_template': DEFAULT_PROMPT_TEMPLATE,
    }


def load_icp_config() -> Dict[str, Any]:
    """Load the default ICP from YAML, with in-memory cache and hardcoded fallback."""
    global _icp_config
    if _icp_config is not None:
        return _icp_config

    config_path = os.path.join(os.path.dirname(__file__), 'icp_config.yaml')
    try:
        with open(config_path, 'r') as f:
            _icp_config = yaml.safe_load(f)
        logger.info("ICP config loaded from YAML (version=%s)", _icp_config.get('version', '?'))
    except Exception as e:
        logger.warning("ICP YAML config not found (%s), using defaults", e)
        _icp_config = _default_config()

    return _icp_config


def load_default_icp() -> 'ICPConfig':
    return ICPConfig.from_dict({})


# ── ICPConfig ────────────────────────────────────────────────────────────────

# canonical field → accepted keys (snake_case first, then the web client's)
_ICP_KEYS = {
    'scoring_criteria': ('scoring_criteria', 'scoringCriteria'),
    'target_industries': ('target_industries', 'targetIndustries'),
    'target_titles': ('target_titles', 'target_roles', 'targetJobTitles', 'targetTitles', 'targetRoles'),
    'target_company_sizes': ('target_company_sizes', 'targetCompanySizes'),
    'target_locations': ('target_locations', 'targetLocations'),
    'target_seniority': ('target_seniority', 'targetSeniority'),
    'prompt_template': ('prompt_template', 'promptTemplate', 'customPrompt', 'custom_prompt'),
}


def _criteria_from(value) -> Dict[str, Dict[str, Any]]:
    """
    Accept {name: {enabled, weight}} or the web client's list form
    [{id, weight, enabled}, ...].
    """
    if isinstance(value, list):
        criteria = {}
        for item in value:
            if not isinstance(item, dict) or not (item.get('id') or item.get('name')):
                raise ValidationError("Each scoring criterion needs an id")
            name = item.get('id') or item.get('name')
            criteria[name] = {'enabled': item.get('enabled', True), 'weight': item.get('weight', 0)}
        return criteria
    if isinstance(value, dict):
        # Non-dict entries are kept as-is so validate() can reject them
        return {
            name: {'enabled': c.get('enabled', True), 'weight': c.get('weight', 0)}
            if isinstance(c, dict) else c
            for name, c in value.items()
        }
    raise ValidationError("scoring_criteria must be an object or a list")


@dataclass
class ICPConfig:
    scoring_criteria: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    target_industries: List[str] = field(default_factory=list)
    target_titles: List[str] = field(default_factory=list)
    target_company_sizes: List[str] = field(default_factory=list)
    target_locations: List[str] = field(default_factory=list)
    target_seniority: List[str] = field(default_factory=list)
    prompt_template: str = ''
    version: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ICPConfig':
        """Build from a request/YAML dict; absent fields come from the default profile."""
        defaults = copy.deepcopy(load_icp_config())
        values = {}
        for name, keys in _ICP_KEYS.items():
            value = None
            for key in keys:
                if data.get(key) is not None:
                    value = data[key]
                    break
            if value is None:
                value = defaults.get(name)
            values[name] = value

        values['scoring_criteria'] = _criteria_from(values['scoring_criteria'] or {})
        return cls(version=str(data.get('version') or defaults.get('version', '')), **values)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'version': self.version,
            'scoring_criteria': copy.deepcopy(self.scoring_criteria),
            'target_industries': list(self.target_industries),
            'target_titles': list(self.target_titles),
            'target_company_sizes': list(self.target_company_sizes),
            'target_locations': list(self.target_locations),
            'target_seniority': list(self.target_seniority),
            'prompt_template': self.prompt_template,
        }

    @property
    def enabled_criteria(self) -> Dict[str, float]:
        return {
            name: c['weight'] for name, c in self.scoring_criteria.items()
            if c.get('enabled')
        }

    def validate(self) -> 'ICPConfig':
        """Raise ValidationError unless the profile is usable. Returns self."""
        for name, criterion in self.scoring_criteria.items():
            if not isinstance(criterion, dict):
                raise ValidationError(f"Criterion '{name}' must be an object")
            weight = criterion.get('weight')
            if isinstance(weight, bool) or not isinstance(weight, (int, float)) or weight < 0:
                raise ValidationError(f"Criterion '{name}' weight must be a non-negative number")

        total = sum(self.enabled_criteria.values())
        if total != 100:
            raise ValidationError(
                f"Enabled criteria weights must sum to 100. Current total: {total:g}"
            )

        for name in ('target_industries', 'target_titles', 'target_company_sizes',
                     'target_locations', 'target_seniority'):
            value = getattr(self, name)
            if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
                raise ValidationError(f"{name} must be a list of strings")

        if not isinstance(self.prompt_template, str) or not self.prompt_template.strip():
            raise ValidationError("prompt_template must be a non-empty string")
        return self


# ── Prompt rendering ─────────────────────────────────────────────────────────

# Only identifier-shaped {placeholders} are substituted; JSON braces in the
# template are left alone.
_PLACEHOLDER = re.compile(r'\{([A-Za-z_][A-Za-z0-9_]*)\}')


def _join(values) -> str:
    return ', '.join(str(v) for v in values or [])


def prompt_values(lead, icp: ICPConfig) -> Dict[str, str]:
    """Every value a prompt template may reference, for one lead."""
    profile = lead.profile_dict()
    values = {
        'full_name': lead.full_name,
        'first_name': lead.first_name,
        'last_name': lead.last_name,
        'job_title': lead.title,
        'title': lead.title,
        'seniority': lead.seniority,
        'company_name': lead.company_name,
        'industry': lead.company_industry,
        'company_industry': lead.company_industry,
        'company_size': lead.company_size,
        'location': lead.location,
        'email': lead.email,
        'profile_url': lead.profile_url,
        'profile_json': json.dumps(profile, indent=2),
        'target_industries': _join(icp.target_industries),
        'target_roles': _join(icp.target_titles),
        'target_titles': _join(icp.target_titles),
        'target_company_sizes': _join(icp.target_company_sizes),
        'target_locations': _join(icp.target_locations),
        'target_seniority': _join(icp.target_seniority),
        'scoring_criteria': '\n'.join(
            f"- {name}: {weight:g}%" for name, weight in icp.enabled_criteria.items()
        ),
    }
    # Placeholder names used by older templates
    values.update({
        'fullName': values['full_name'],
        'firstName': values['first_name'],
        'lastName': values['last_name'],
        'jobTitle': values['job_title'],
        'companyName': values['company_name'],
        'companyIndustry': values['industry'],
        'companySize': values['company_size'],
        'profileUrl': values['profile_url'],
    })
    return {k: '' if v is None else str(v) for k, v in values.items()}


def render_prompt(template: str, lead, icp: ICPConfig) -> str:
    """Substitute {placeholders}; unknown ones render as empty strings."""
    values = prompt_values(lead, icp)
    return _PLACEHOLDER.sub(lambda m: values.get(m.group(1), ''), template)


def default_prompt() -> Dict[str, Any]:
    """Default template plus the target values it is rendered with."""
    icp = load_default_icp()
    return {
        'prompt': icp.prompt_template,
        'default_values': {
            'target_roles': _join(icp.target_titles),
            'target_industries': _join(icp.target_industries),
            'target_company_sizes': _join(icp.target_company_sizes),
            'target_locations': _join(icp.target_locations),
            'target_seniority': _join(icp.target_seniority),
        },
    }
