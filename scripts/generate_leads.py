#!/usr/bin/env python3
"""
Start a lead generation session and follow it until it finishes.

Usage:
    python scripts/generate_leads.py --roles "Plant Manager,Operations Manager" --locations "Texas"
    python scripts/generate_leads.py --method search_enrich --roles CTO --locations Berlin --limit 10 --show-leads

Exit codes: 0 completed, 1 failed, 2 request rejected or session not found.
"""
import sys
import os
import argparse
import logging

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from leadgen.logging_config import configure_logging
from leadgen.status_client import LeadGenClient, StatusClientError, SessionNotFoundError


def _split(value):
    return [v.strip() for v in (value or '').split(',') if v.strip()]


def _print_event(event):
    payload = event.get('payload', {})
    message = payload.get('message', '')
    progress = payload.get('progress')
    suffix = f" ({progress:.0%})" if isinstance(progress, (int, float)) else ''
    print(f"  [{event.get('seq'):>3}] {event.get('type'):<22} {message}{suffix}")


def main(argv=None):
    parser = argparse.ArgumentParser(description='Generate and score leads')
    parser.add_argument('--url', default=os.getenv('LEADGEN_API_URL', 'http://localhost:8080'))
    parser.add_argument('--method', default='broker', help='broker or search_enrich')
    parser.add_argument('--roles', required=True, help='Comma-separated job titles')
    parser.add_argument('--locations', required=True, help='Comma-separated locations')
    parser.add_argument('--industries', default='', help='Comma-separated industries')
    parser.add_argument('--sizes', default='', help='Comma-separated company size buckets, e.g. 51-200,5000+')
    parser.add_argument('--limit', type=int, default=None)
    parser.add_argument('--interval', type=float, default=2.0, help='Seconds between status polls')
    parser.add_argument('--not-found-retries', type=int, default=10)
    parser.add_argument('--show-leads', action='store_true')
    args = parser.parse_args(argv)

    configure_logging()
    logging.getLogger('leadgen.status_client').setLevel(logging.WARNING)

    body = {
        'method': args.method,
        'roleTerms': _split(args.roles),
        'locationTerms': _split(args.locations),
        'industryTerms': _split(args.industries),
        'companySizeBuckets': _split(args.sizes),
    }
    if args.limit is not None:
        body['resultLimit'] = args.limit

    client = LeadGenClient(args.url, poll_interval=args.interval,
                           not_found_retries=args.not_found_retries)
    try:
        session_id = client.start(body)
        print(f"Session {session_id} started")
        final = client.follow(session_id, on_event=_print_event)
    except SessionNotFoundError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except StatusClientError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    print(f"Session {final['status']}: {final.get('summary', '')}")
    if final['status'] != 'completed':
        return 1

    if args.show_leads:
        for lead in client.leads(session_id):
            print(f"  {lead.get('icp_grade') or '-':<3} {lead.get('icp_score') or 0:>3}  "
                  f"{lead.get('full_name')} — {lead.get('title')} @ {lead.get('company_name')}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
