"""
Apify actor clients — scrape broker, profile search and profile enrichment.

Every provider job follows the same protocol: start an actor run, poll the
run until it is terminal, then read the run's default dataset. The three
clients differ only in the actor they run and the input they build.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import quote, urlparse

from leadgen.config import (
    APIFY_BROKER_ACTOR, APIFY_SEARCH_ACTOR, APIFY_ENRICHMENT_ACTOR,
    APIFY_POLL_INTERVAL, APIFY_POLL_MAX_ATTEMPTS,
)
from leadgen.services.polling import (
    PollPolicy, ProviderError, ProviderJobFailedError, ProviderTimeoutError,
    poll_until_terminal,
)

logger = logging.getLogger('services.apify')


def default_poll_policy() -> PollPolicy:
    return PollPolicy(interval=APIFY_POLL_INTERVAL, max_attempts=APIFY_POLL_MAX_ATTEMPTS)


@dataclass
class JobHandle:
    """Provider-assigned identity of one actor run."""
    actor_id: str
    run_id: str
    status: str = 'READY'
    dataset_id: str = ''


# ============================================================================
# GENERIC ACTOR CLIENT
# ============================================================================

class ApifyActorClient:
    """
    submit / poll_until_terminal / fetch_results over one Apify actor.

    `apify` is an apify_client.ApifyClient (or anything with the same
    actor()/run()/dataset() surface). When it is None every call raises
    ProviderError, so a missing token fails the stage instead of the import.
    """

    SUCCEEDED = 'SUCCEEDED'
    FAILED_STATUSES = ('FAILED', 'ABORTED', 'TIMED-OUT')

    def __init__(self, apify, actor_id: str, policy: PollPolicy = None):
        self.apify = apify
        self.actor_id = actor_id
        self.policy = policy or default_poll_policy()

    def _require_client(self):
        if self.apify is None:
            raise ProviderError("APIFY_API_TOKEN not set")

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def submit(self, run_input: Dict[str, Any]) -> JobHandle:
        """Start an actor run without waiting for it."""
        self._require_client()
        try:
            run = self.apify.actor(self.actor_id).start(run_input=run_input)
        except Exception as e:
            raise ProviderError(f"Could not start actor {self.actor_id}: {e}") from e

        handle = JobHandle(
            actor_id=self.actor_id,
            run_id=run['id'],
            status=run.get('status', 'READY'),
            dataset_id=run.get('defaultDatasetId', ''),
        )
        logger.info("Started %s run %s", self.actor_id, handle.run_id)
        return handle

    def poll_until_terminal(
        self,
        handle: JobHandle,
        on_attempt: Optional[Callable[[int, int], None]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> JobHandle:
        """
        Wait for the run to finish.

        Raises:
            ProviderTimeoutError:   still running after policy.max_attempts polls
                                    (the remote run is aborted best-effort).
            ProviderJobFailedError: run ended FAILED / ABORTED / TIMED-OUT.
        """
        self._require_client()

        def fetch():
            try:
                return self.apify.run(handle.run_id).get() or {}
            except Exception as e:
                # A dropped status request counts as a non-terminal poll
                logger.warning("Status check for run %s failed: %s", handle.run_id, e)
                return {}

        def is_terminal(run):
            status = run.get('status')
            return status == self.SUCCEEDED or status in self.FAILED_STATUSES

        try:
            run = poll_until_terminal(
                fetch, is_terminal, self.policy,
                job_id=handle.run_id, on_attempt=on_attempt, sleep=sleep,
            )
        except ProviderTimeoutError:
            self._abort(handle)
            raise

        handle.status = run['status']
        handle.dataset_id = run.get('defaultDatasetId') or handle.dataset_id
        if handle.status != self.SUCCEEDED:
            raise ProviderJobFailedError(handle.run_id, handle.status, run.get('statusMessage', ''))

        logger.info("%s run %s succeeded", self.actor_id, handle.run_id)
        return handle

    def fetch_results(self, handle: JobHandle, limit: int = None) -> List[Dict[str, Any]]:
        """Items of the run's dataset. An empty dataset is a valid result."""
        self._require_client()
        if not handle.dataset_id:
            raise ProviderError(f"Run {handle.run_id} has no dataset")
        try:
            items = list(self.apify.dataset(handle.dataset_id).iterate_items(limit=limit))
        except Exception as e:
            raise ProviderError(f"Could not read dataset {handle.dataset_id}: {e}") from e
        logger.info("Run %s returned %d items", handle.run_id, len(items))
        return items

    def _abort(self, handle: JobHandle):
        """Stop a run we gave up on so it stops consuming credits."""
        try:
            self.apify.run(handle.run_id).abort()
            logger.info("Aborted run %s after polling timeout", handle.run_id)
        except Exception as e:
            logger.warning("Could not abort run %s: %s", handle.run_id, e)


# ============================================================================
# SCRAPE BROKER (structured people search)
# ============================================================================

APOLLO_PEOPLE_URL = 'https://app.apollo.io/#/people'


def company_size_range(bucket: str) -> str:
    """
    Convert a company-size bucket to Apollo's employee range syntax.

    "51-200" → "51,200", "5000+" → "5000,", "11,20" is passed through.
    """
    bucket = (bucket or '').replace(' ', '')
    if not bucket:
        return ''
    if bucket.endswith('+'):
        return f"{bucket[:-1]},"
    if '-' in bucket:
        low, high = bucket.split('-', 1)
        return f"{low},{high}"
    return bucket


def build_apollo_search_url(role_terms: List[str], location_terms: List[str],
                            industry_terms: List[str] = None,
                            company_size_buckets: List[str] = None) -> str:
    """
    Apollo people-search URL for the broker actor.

    A clause is only added when it has values — absent filters are omitted,
    never sent empty.
    """
    parts = [
        'sortByField=recommendations_score',
        'sortAscending=false',
        'page=1',
    ]

    def add_array(name: str, values: List[str]):
        for value in values or []:
            value = (value or '').strip()
            if value:
                parts.append(f"{name}[]={quote(value, safe='')}")

    add_array('personTitles', role_terms)
    add_array('personLocations', location_terms)
    add_array('qOrganizationKeywordTags', industry_terms)
    add_array('organizationNumEmployeesRanges',
              [company_size_range(b) for b in company_size_buckets or []])

    if industry_terms:
        parts.append('includedOrganizationKeywordFields[]=tags')
        parts.append('includedOrganizationKeywordFields[]=name')

    return f"{APOLLO_PEOPLE_URL}?{'&'.join(parts)}"


class ScrapeBrokerClient(ApifyActorClient):
    """Structured people search through an Apollo scraper actor."""

    def __init__(self, apify, actor_id: str = APIFY_BROKER_ACTOR, policy: PollPolicy = None):
        super().__init__(apify, actor_id, policy)

    def build_input(self, request) -> Dict[str, Any]:
        url = build_apollo_search_url(
            request.role_terms, request.location_terms,
            request.industry_terms, request.company_size_buckets,
        )
        logger.info("Apollo search URL: %s", url)
        return {
            'startUrls': [{'url': url}],
            'maxItems': request.result_limit,
        }


# ============================================================================
# PROFILE SEARCH (search-engine derived profile list)
# ============================================================================

def canonical_profile_url(url: str) -> str:
    """
    Canonical form of a LinkedIn profile URL, used to match search results
    with enrichment results: https, www host, no query/fragment/trailing slash.
    """
    if not url or not isinstance(url, str):
        return ''
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return ''
    host = (parsed.netloc or '').lower()
    if not host.endswith('linkedin.com'):
        return url.strip()
    path = parsed.path.rstrip('/')
    return f"https://www.linkedin.com{path}"


class ProfileSearchClient(ApifyActorClient):
    """Search-engine scrape for public LinkedIn profiles matching the request."""

    PROFILE_MARKER = 'linkedin.com/in/'
    RESULTS_PER_PAGE = 10

    def __init__(self, apify, actor_id: str = APIFY_SEARCH_ACTOR, policy: PollPolicy = None):
        super().__init__(apify, actor_id, policy)

    @staticmethod
    def build_query(request) -> str:
        terms = ['site:linkedin.com/in/']
        terms += [t for t in request.role_terms if t]
        terms += [t for t in request.location_terms if t]
        terms += [t for t in request.industry_terms or [] if t]
        return ' '.join(terms)

    def build_input(self, request) -> Dict[str, Any]:
        query = self.build_query(request)
        logger.info("Profile search query: %s", query)
        return {
            'queries': query,
            'maxPagesPerQuery': max(1, math.ceil(request.result_limit / self.RESULTS_PER_PAGE)),
            'resultsPerPage': self.RESULTS_PER_PAGE,
            'countryCode': 'us',
            'languageCode': 'en',
            'mobileResults': False,
        }

    @classmethod
    def extract_profiles(cls, items: List[Dict[str, Any]], limit: int) -> List[Dict[str, Any]]:
        """
        Profile references from search result pages.

        Returns search-shaped candidates: profile_url plus the result's title
        and snippet (kept so a lead can still be built if enrichment fails).
        """
        found = []
        seen = set()
        for item in items:
            for result in item.get('organicResults') or []:
                if len(found) >= limit:
                    return found
                url = result.get('url', '')
                if cls.PROFILE_MARKER not in url:
                    continue
                canonical = canonical_profile_url(url)
                if canonical in seen:
                    continue
                seen.add(canonical)
                found.append({
                    'profile_url': canonical,
                    '_search_title': result.get('title', ''),
                    '_search_snippet': (result.get('description') or '')[:2000],
                })
        return found


# ============================================================================
# ENRICHMENT (profile detail scrape)
# ============================================================================

class EnrichmentClient(ApifyActorClient):
    """Detailed profile scrape for references found by ProfileSearchClient."""

    def __init__(self, apify, actor_id: str = APIFY_ENRICHMENT_ACTOR, policy: PollPolicy = None):
        super().__init__(apify, actor_id, policy)

    def build_input(self, profile_urls: List[str]) -> Dict[str, Any]:
        return {
            'startUrls': [{'url': u} for u in profile_urls],
            'maxItems': len(profile_urls),
        }
