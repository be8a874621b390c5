"""
OpenAI API helpers — single-shot ICP scoring prompt with JSON output.

Works against any OpenAI-compatible endpoint (OPENAI_BASE_URL), e.g. OpenRouter.
"""
import json
import logging
from typing import Any, Dict

from leadgen.config import ICP_SCORING_MODEL

logger = logging.getLogger('services.openai')

SYSTEM_PROMPT = (
    "You are a B2B sales analyst. Score the prospect against the ideal customer "
    "profile and respond only with a JSON object containing "
    '"score" (integer 0-100), "grade" (A+, A, B+, B, C+, C, D+ or D) '
    'and "rationale" (one or two sentences).'
)


class ScoringUnavailableError(RuntimeError):
    """No model client configured."""


def request_icp_score(prompt: str, client=None, model: str = ICP_SCORING_MODEL) -> Dict[str, Any]:
    """
    Send one rendered ICP prompt to the model and return the parsed JSON object.

    Raises on anything that is not a JSON object — the caller decides how to
    degrade. No retries here.
    """
    if client is None:
        from leadgen.extensions import openai_client as client
    if client is None:
        raise ScoringUnavailableError("OPENAI_API_KEY not set")

    response = client.chat.completions.create(
        model=model,
        messages=[
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ],
        response_format={"type": "json_object"},
        temperature=0.2,
    )
    content = response.choices[0].message.content or ''
    result = json.loads(content)
    if not isinstance(result, dict):
        raise ValueError(f"Expected a JSON object, got {type(result).__name__}")
    return result
