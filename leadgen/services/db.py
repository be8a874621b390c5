"""
Lead persistence helpers — called from the pipeline orchestrator.

Unlike the session registry, a failed lead write is fatal for the session:
save_leads() rolls back the whole batch and raises PersistenceError.
"""
import logging
from typing import Dict, List

from leadgen.database import get_session
from leadgen.models.lead import Lead

logger = logging.getLogger('services.db')


class PersistenceError(Exception):
    """The lead batch could not be stored."""


class LeadStore:
    """Batch lead storage handed to the orchestrator."""

    def save(self, session_id: str, leads) -> int:
        return save_leads(session_id, leads)

    def list(self, session_id: str) -> List[Dict]:
        return list_leads(session_id)


def save_leads(session_id: str, leads) -> int:
    """
    Insert every NormalizedLead of a session in one transaction.

    Returns the number of rows written.
    """
    session = get_session()
    try:
        for lead in leads:
            session.add(Lead(
                session_id=session_id,
                first_name=lead.first_name,
                last_name=lead.last_name,
                full_name=lead.full_name,
                email=lead.email,
                title=lead.title,
                seniority=lead.seniority,
                company_name=lead.company_name,
                company_industry=lead.company_industry,
                company_size=lead.company_size,
                location=lead.location,
                profile_url=lead.profile_url,
                source_method=lead.source_method,
                enriched=lead.enriched,
                icp_score=lead.icp_score,
                icp_grade=lead.icp_grade,
                icp_rationale=lead.icp_rationale,
            ))
        session.commit()
        logger.info("Persisted %d leads for session %s", len(leads), session_id)
        return len(leads)
    except Exception as e:
        session.rollback()
        logger.error("Failed to persist leads for session %s", session_id, exc_info=True)
        raise PersistenceError(f"Failed to save leads: {e}") from e
    finally:
        session.close()


def list_leads(session_id: str) -> List[Dict]:
    """Persisted leads of one session, best ICP score first."""
    session = get_session()
    try:
        rows = (
            session.query(Lead)
            .filter(Lead.session_id == session_id)
            .order_by(Lead.icp_score.desc(), Lead.id)
            .all()
        )
        return [row.to_dict() for row in rows]
    finally:
        session.close()
