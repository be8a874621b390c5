"""
Centralized configuration — all env vars, constants, pipeline states.
"""
import os


# ── Logging ──────────────────────────────────────────────────────────────────
LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
LOG_FORMAT = os.getenv('LOG_FORMAT', 'text')

# ── Redis ─────────────────────────────────────────────────────────────────────
REDIS_URL = os.getenv('REDIS_URL', 'redis://localhost:6379/0')

# ── PostgreSQL ────────────────────────────────────────────────────────────────
DATABASE_URL = os.getenv('DATABASE_URL', 'sqlite:///local.db')

# ── OpenAI (or any OpenAI-compatible endpoint, e.g. OpenRouter) ──────────────
OPENAI_API_KEY = os.getenv('OPENAI_API_KEY')
OPENAI_BASE_URL = os.getenv('OPENAI_BASE_URL')
ICP_SCORING_MODEL = os.getenv('ICP_SCORING_MODEL', 'gpt-4o-mini')
# 1 = score leads one at a time; >1 = concurrent model calls
SCORING_WORKERS = int(os.getenv('SCORING_WORKERS', '1'))

# ── Apify ─────────────────────────────────────────────────────────────────────
APIFY_API_TOKEN = os.getenv('APIFY_API_TOKEN')
APIFY_BROKER_ACTOR = os.getenv('APIFY_BROKER_ACTOR', 'curious_coder~apollo-io-scraper')
APIFY_SEARCH_ACTOR = os.getenv('APIFY_SEARCH_ACTOR', 'apify~google-search-scraper')
APIFY_ENRICHMENT_ACTOR = os.getenv('APIFY_ENRICHMENT_ACTOR', 'apify~linkedin-profile-scraper')
APIFY_POLL_INTERVAL = float(os.getenv('APIFY_POLL_INTERVAL', '2'))
APIFY_POLL_MAX_ATTEMPTS = int(os.getenv('APIFY_POLL_MAX_ATTEMPTS', '30'))

# ── Slack notifications ──────────────────────────────────────────────────────
SLACK_WEBHOOK_URL = os.getenv('SLACK_WEBHOOK_URL')

# ── Background jobs ──────────────────────────────────────────────────────────
RQ_ASYNC = os.getenv('RQ_ASYNC', '1') not in ('0', 'false', 'False')
PIPELINE_JOB_TIMEOUT = int(os.getenv('PIPELINE_JOB_TIMEOUT', '3600'))

# ── Session retention ────────────────────────────────────────────────────────
SESSION_RUNNING_TTL = int(os.getenv('SESSION_RUNNING_TTL', str(3600 * 4)))
SESSION_RETENTION_TTL = int(os.getenv('SESSION_RETENTION_TTL', str(86400)))
SESSION_STALE_AFTER = int(os.getenv('SESSION_STALE_AFTER', '300'))

# ── Request limits ───────────────────────────────────────────────────────────
DEFAULT_RESULT_LIMIT = int(os.getenv('DEFAULT_RESULT_LIMIT', '25'))
MAX_RESULT_LIMIT = int(os.getenv('MAX_RESULT_LIMIT', '100'))

# ── Sourcing methods ─────────────────────────────────────────────────────────
METHOD_BROKER = 'broker'
METHOD_SEARCH_ENRICH = 'search_enrich'
SOURCE_METHODS = [METHOD_BROKER, METHOD_SEARCH_ENRICH]

# Names used by the legacy web client
METHOD_ALIASES = {
    'apollo': METHOD_BROKER,
    'google_apify': METHOD_SEARCH_ENRICH,
}

# ── Pipeline state machine ───────────────────────────────────────────────────
PIPELINE_STAGES = [
    'created',
    'source_searching',
    'enriching',
    'normalizing',
    'scoring',
    'persisting',
    'completed',
    'failed',
]

TERMINAL_STAGES = ('completed', 'failed')

# ── Progress event types ─────────────────────────────────────────────────────
EVENT_TYPES = [
    'started',
    'source_search_started',
    'profiles_found',
    'enrichment_started',
    'profile_enriched',
    'enrichment_completed',
    'warning',
    'processing_started',
    'scoring_started',
    'lead_scored',
    'persisting_started',
    'persisting_completed',
    'completed',
    'error',
    'heartbeat',
]

TERMINAL_EVENTS = ('completed', 'error')

# ── ICP grades (best first) with the lower score bound of each band ─────────
ICP_GRADE_BANDS = [
    ('A+', 95),
    ('A', 85),
    ('B+', 75),
    ('B', 65),
    ('C+', 55),
    ('C', 45),
    ('D+', 35),
    ('D', 0),
]
ICP_GRADES = [grade for grade, _ in ICP_GRADE_BANDS]
