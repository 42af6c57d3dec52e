from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime,
    ForeignKey, JSON, Index
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Company(Base):
    """Registered organization as last seen in the registry."""
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True)
    orgnr = Column(String(32), unique=True, nullable=False)
    name = Column(String(500), nullable=False)
    status = Column(String(20), nullable=False, default="active")  # active | inactive
    organization_form_code = Column(String(20))
    organization_form_name = Column(String(255))
    founded_date = Column(Date)

    # Location
    municipality = Column(String(255))
    municipality_number = Column(String(10))
    county = Column(String(100))
    postal_code = Column(String(20))
    address = Column(Text)

    # Industry
    industry_code = Column(String(20))
    industry_description = Column(String(500))
    employee_count = Column(Integer)

    # Contact
    phone = Column(String(50))
    website = Column(String(500))
    email = Column(String(255))
    logo_url = Column(Text)

    has_roles_data = Column(Boolean, nullable=False, default=False)

    # Scores (0-100)
    overall_lead_score = Column(Integer, nullable=False, default=0)
    use_case_fit = Column(Integer, nullable=False, default=0)
    urgency_score = Column(Integer, nullable=False, default=0)
    data_quality_score = Column(Integer, nullable=False, default=0)
    ai_summary = Column(Text)

    last_seen_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    source_updated_at = Column(DateTime)
    raw_json = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_companies_status", "status"),
        Index("ix_companies_overall_lead_score", "overall_lead_score"),
        Index("ix_companies_county", "county"),
        Index("ix_companies_industry_code", "industry_code"),
        # Roles sync selects active companies without role data
        Index("ix_companies_status_roles", "status", "has_roles_data"),
    )

    sub_entities = relationship("SubEntity", back_populates="parent")
    roles = relationship("CompanyRole", back_populates="company")
    explanations = relationship(
        "ScoreExplanation",
        back_populates="company",
        order_by="ScoreExplanation.position",
    )


class SubEntity(Base):
    """Branch or secondary location owned by a company."""
    __tablename__ = "sub_entities"

    id = Column(Integer, primary_key=True)
    orgnr = Column(String(32), unique=True, nullable=False)
    parent_orgnr = Column(String(32), ForeignKey("companies.orgnr"), nullable=False)
    name = Column(String(500), nullable=False)
    status = Column(String(20), default="active")
    industry_code = Column(String(20))
    address = Column(Text)
    municipality = Column(String(255))
    raw_json = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("ix_sub_entities_parent_orgnr", "parent_orgnr"),
    )

    parent = relationship("Company", back_populates="sub_entities")


class CompanyRole(Base):
    __tablename__ = "company_roles"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    role_type = Column(String(255), nullable=False)
    role_group = Column(String(255))
    person_name = Column(String(255))
    birth_date = Column(Date)
    raw_json = Column(JSON)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_company_roles_company_id", "company_id"),
    )

    company = relationship("Company", back_populates="roles")


class ScoreExplanation(Base):
    """One evaluated signal from the most recent scoring pass."""
    __tablename__ = "score_explanations"

    id = Column(Integer, primary_key=True)
    company_id = Column(Integer, ForeignKey("companies.id"), nullable=False)
    signal = Column(String(100), nullable=False)
    weight = Column(Integer, nullable=False)
    reason = Column(Text, nullable=False)
    active = Column(Boolean, nullable=False, default=False)
    position = Column(Integer, nullable=False, default=0)  # Declaration order
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        Index("ix_score_explanations_company_id", "company_id"),
    )

    company = relationship("Company", back_populates="explanations")


class SyncJob(Base):
    """Audit record for one sync run.

    Field names and the type/status values are read by status reporting
    and must stay stable.
    """
    __tablename__ = "sync_jobs"

    id = Column(Integer, primary_key=True)
    type = Column(String(20), nullable=False)  # full | incremental | roles | subentities
    status = Column(String(20), nullable=False, default="running")  # running | completed | failed
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    finished_at = Column(DateTime)
    processed_count = Column(Integer, nullable=False, default=0)
    error_count = Column(Integer, nullable=False, default=0)
    log = Column(Text)

    __table_args__ = (
        # Checkpoint lookup: latest completed job per type
        Index("ix_sync_jobs_type_status_finished", "type", "status", "finished_at"),
    )
