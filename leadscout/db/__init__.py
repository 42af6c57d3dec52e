from leadscout.db.models import Base, Company, SubEntity, CompanyRole, ScoreExplanation, SyncJob
from leadscout.db.session import create_db_engine, create_session_factory, session_scope
from leadscout.db.stores import EntityStore, JobStore, job_to_dict

__all__ = [
    "Base",
    "Company",
    "SubEntity",
    "CompanyRole",
    "ScoreExplanation",
    "SyncJob",
    "create_db_engine",
    "create_session_factory",
    "session_scope",
    "EntityStore",
    "JobStore",
    "job_to_dict",
]
