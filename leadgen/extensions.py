"""
Shared client instances — Redis, OpenAI, Apify.

Importing this module is always safe (even when env vars are missing during
tests): redis-py connects lazily and the API clients are only built when
their credentials are set. The pipeline never reaches for these directly;
the job entry point hands them to the orchestrator.
"""
import logging
import redis

from leadgen.config import (
    REDIS_URL,
    OPENAI_API_KEY, OPENAI_BASE_URL,
    APIFY_API_TOKEN,
)

logger = logging.getLogger('leadgen.extensions')

# ── Redis ─────────────────────────────────────────────────────────────────────
redis_client = redis.from_url(REDIS_URL, decode_responses=True)

# ── OpenAI ────────────────────────────────────────────────────────────────────
openai_client = None
if OPENAI_API_KEY:
    try:
        from openai import OpenAI
        if OPENAI_BASE_URL:
            openai_client = OpenAI(api_key=OPENAI_API_KEY, base_url=OPENAI_BASE_URL)
        else:
            openai_client = OpenAI(api_key=OPENAI_API_KEY)
        logger.info("OpenAI client initialized successfully")
    except Exception as e:
        logger.error("Error initializing OpenAI client: %s", e)
else:
    logger.warning("OPENAI_API_KEY not set — leads will receive the default failure score")

# ── Apify ─────────────────────────────────────────────────────────────────────
apify_client = None
if APIFY_API_TOKEN:
    try:
        from apify_client import ApifyClient
        apify_client = ApifyClient(APIFY_API_TOKEN)
        logger.info("Apify client initialized successfully")
    except Exception as e:
        logger.error("Error initializing Apify client: %s", e)
else:
    logger.warning("APIFY_API_TOKEN not set — lead sourcing will fail")
