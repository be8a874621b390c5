"""
Lead model — one row per NormalizedLead persisted by a pipeline session.
"""
from sqlalchemy import Column, Integer, Text, DateTime, Boolean, Index
from sqlalchemy.sql import func

from leadgen.database import Base


class Lead(Base):
    __tablename__ = 'leads'

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Text, nullable=False)
    first_name = Column(Text, default='')
    last_name = Column(Text, default='')
    full_name = Column(Text, default='')
    email = Column(Text, default='')
    title = Column(Text, default='')
    seniority = Column(Text, default='')
    company_name = Column(Text, default='')
    company_industry = Column(Text, default='')
    company_size = Column(Text, default='')
    location = Column(Text, default='')
    profile_url = Column(Text, default='')
    source_method = Column(Text, nullable=False)   # broker / search_enrich
    enriched = Column(Boolean, default=False)
    icp_score = Column(Integer, nullable=True)     # 0-100
    icp_grade = Column(Text, nullable=True)        # A+ .. D
    icp_rationale = Column(Text, nullable=True)
    email_status = Column(Text, default='not_sent')
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('ix_leads_session_id', 'session_id'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'session_id': self.session_id,
            'first_name': self.first_name or '',
            'last_name': self.last_name or '',
            'full_name': self.full_name or '',
            'email': self.email or '',
            'title': self.title or '',
            'seniority': self.seniority or '',
            'company_name': self.company_name or '',
            'company_industry': self.company_industry or '',
            'company_size': self.company_size or '',
            'location': self.location or '',
            'profile_url': self.profile_url or '',
            'source_method': self.source_method,
            'enriched': bool(self.enriched),
            'icp_score': self.icp_score,
            'icp_grade': self.icp_grade,
            'icp_rationale': self.icp_rationale,
            'email_status': self.email_status,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
