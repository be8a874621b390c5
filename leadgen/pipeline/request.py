"""
Generation request — the validated parameters of one pipeline session.

Accepts the camelCase keys of the web client, their snake_case spelling and
the older field names (jobTitles, locations, industries, companySizes, limit;
methods 'apollo' / 'google_apify').
"""
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, Optional

from leadgen.config import (
    SOURCE_METHODS, METHOD_ALIASES, DEFAULT_RESULT_LIMIT, MAX_RESULT_LIMIT,
)


class ValidationError(ValueError):
    """Request rejected before any session or network I/O."""


# canonical field → accepted body keys, first match wins
_FIELD_KEYS = {
    'method': ('method',),
    'role_terms': ('roleTerms', 'role_terms', 'jobTitles', 'job_titles'),
    'location_terms': ('locationTerms', 'location_terms', 'locations'),
    'industry_terms': ('industryTerms', 'industry_terms', 'industries'),
    'company_size_buckets': ('companySizeBuckets', 'company_size_buckets', 'companySizes', 'company_sizes'),
    'result_limit': ('resultLimit', 'result_limit', 'limit'),
    'icp': ('icp', 'icpConfig', 'icp_config'),
}


def _pick(body: Dict[str, Any], name: str):
    for key in _FIELD_KEYS[name]:
        if key in body and body[key] is not None:
            return body[key]
    return None


def _terms(value, name: str) -> List[str]:
    """List of non-empty strings; a comma-separated string is split."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(',')
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{name} must be a list of strings")
    terms = []
    for item in value:
        if not isinstance(item, str):
            raise ValidationError(f"{name} must be a list of strings")
        item = item.strip()
        if item:
            terms.append(item)
    return terms


@dataclass
class GenerationRequest:
    method: str
    role_terms: List[str]
    location_terms: List[str]
    industry_terms: List[str] = field(default_factory=list)
    company_size_buckets: List[str] = field(default_factory=list)
    result_limit: int = DEFAULT_RESULT_LIMIT
    icp: Optional[Dict[str, Any]] = None

    @classmethod
    def from_dict(cls, body: Dict[str, Any]) -> 'GenerationRequest':
        """Parse and validate a request body. Raises ValidationError."""
        if not isinstance(body, dict):
            raise ValidationError("Request body must be a JSON object")

        method = _pick(body, 'method')
        if not method:
            raise ValidationError("Missing required parameter: method")
        method = METHOD_ALIASES.get(method, method)
        if method not in SOURCE_METHODS:
            raise ValidationError(
                f"Invalid method '{method}'. Must be one of: {', '.join(SOURCE_METHODS)}"
            )

        role_terms = _terms(_pick(body, 'role_terms'), 'roleTerms')
        location_terms = _terms(_pick(body, 'location_terms'), 'locationTerms')
        if not role_terms or not location_terms:
            raise ValidationError("Missing required parameters: roleTerms and locationTerms")

        limit = _pick(body, 'result_limit')
        if limit is None:
            limit = DEFAULT_RESULT_LIMIT
        try:
            limit = int(limit)
        except (TypeError, ValueError):
            raise ValidationError("resultLimit must be an integer")
        if isinstance(_pick(body, 'result_limit'), bool) or not 1 <= limit <= MAX_RESULT_LIMIT:
            raise ValidationError(f"resultLimit must be between 1 and {MAX_RESULT_LIMIT}")

        icp = _pick(body, 'icp')
        if icp is not None:
            from leadgen.pipeline.icp import ICPConfig
            if not isinstance(icp, dict):
                raise ValidationError("icp must be an object")
            icp = ICPConfig.from_dict(icp).validate().to_dict()

        return cls(
            method=method,
            role_terms=role_terms,
            location_terms=location_terms,
            industry_terms=_terms(_pick(body, 'industry_terms'), 'industryTerms'),
            company_size_buckets=_terms(_pick(body, 'company_size_buckets'), 'companySizeBuckets'),
            result_limit=limit,
            icp=icp,
        )

    def to_params(self) -> Dict[str, Any]:
        """Session params (the ICP snapshot is stored separately)."""
        params = asdict(self)
        params.pop('icp')
        return params
