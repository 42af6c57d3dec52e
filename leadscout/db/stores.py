"""Persistence for sync jobs and registry entities.

Every public method runs in its own session and transaction, so store
instances can be shared by the orchestrator's worker threads.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from leadscout.core.constants import (
    COMPANY_STATUS_ACTIVE,
    JOB_STATUS_COMPLETED,
    JOB_STATUS_FAILED,
    JOB_STATUS_RUNNING,
    JOB_TYPES,
)
from leadscout.core.exceptions import JobPersistenceError, ParentNotFoundError
from leadscout.core.logging import get_logger
from leadscout.db.models import Company, CompanyRole, ScoreExplanation, SubEntity, SyncJob
from leadscout.db.session import session_scope
from leadscout.registry.base import EntitySnapshot, RoleRecord, SubEntityRecord
from leadscout.scoring.engine import RelatedCounts, ScoringResult

logger = get_logger("db.stores")

# Snapshot fields copied onto the company row on every upsert
SNAPSHOT_FIELDS = (
    "name",
    "status",
    "organization_form_code",
    "organization_form_name",
    "founded_date",
    "municipality",
    "municipality_number",
    "county",
    "postal_code",
    "address",
    "industry_code",
    "industry_description",
    "employee_count",
    "phone",
    "website",
    "email",
    "logo_url",
    "source_updated_at",
    "raw_json",
)


def job_to_dict(job: SyncJob) -> Dict[str, Any]:
    """Serialize a job for status reporting (stable field names)."""
    return {
        "id": job.id,
        "type": job.type,
        "status": job.status,
        "startedAt": job.started_at.isoformat() if job.started_at else None,
        "finishedAt": job.finished_at.isoformat() if job.finished_at else None,
        "processedCount": job.processed_count,
        "errorCount": job.error_count,
        "log": job.log,
    }


class JobStore:
    """Create and transition SyncJob rows."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def create(self, job_type: str, started_at: Optional[datetime] = None) -> int:
        """Create a job in status running.

        Returns:
            The new job id

        Raises:
            JobPersistenceError: If the row cannot be written
        """
        if job_type not in JOB_TYPES:
            raise JobPersistenceError(f"Unknown job type: {job_type}", operation="create")
        try:
            with session_scope(self._session_factory) as session:
                job = SyncJob(
                    type=job_type,
                    status=JOB_STATUS_RUNNING,
                    started_at=started_at or datetime.utcnow(),
                    processed_count=0,
                    error_count=0,
                )
                session.add(job)
                session.flush()
                return job.id
        except SQLAlchemyError as e:
            raise JobPersistenceError(f"Could not create {job_type} job: {e}", operation="create") from e

    def update_progress(self, job_id: int, processed: int, errors: int) -> None:
        """Store intermediate counters on a running job."""
        try:
            with session_scope(self._session_factory) as session:
                job = self._get_running(session, job_id, "update_progress")
                job.processed_count = processed
                job.error_count = errors
        except SQLAlchemyError as e:
            raise JobPersistenceError(
                f"Could not update job {job_id}: {e}", job_id=job_id, operation="update_progress"
            ) from e

    def complete(
        self,
        job_id: int,
        processed: int,
        errors: int,
        log: str,
        finished_at: Optional[datetime] = None,
    ) -> None:
        self._finish(job_id, JOB_STATUS_COMPLETED, processed, errors, log, finished_at)

    def fail(
        self,
        job_id: int,
        processed: int,
        errors: int,
        log: str,
        finished_at: Optional[datetime] = None,
    ) -> None:
        self._finish(job_id, JOB_STATUS_FAILED, processed, errors, log, finished_at)

    def get(self, job_id: int) -> Optional[SyncJob]:
        with session_scope(self._session_factory) as session:
            return session.get(SyncJob, job_id)

    def recent(self, limit: int = 20) -> List[SyncJob]:
        with session_scope(self._session_factory) as session:
            return (
                session.query(SyncJob)
                .order_by(SyncJob.started_at.desc(), SyncJob.id.desc())
                .limit(limit)
                .all()
            )

    def last_completed_finished_at(self, job_type: str) -> Optional[datetime]:
        """finished_at of the most recent completed job of a type."""
        with session_scope(self._session_factory) as session:
            job = (
                session.query(SyncJob)
                .filter(
                    SyncJob.type == job_type,
                    SyncJob.status == JOB_STATUS_COMPLETED,
                    SyncJob.finished_at.isnot(None),
                )
                .order_by(SyncJob.finished_at.desc())
                .first()
            )
            return job.finished_at if job else None

    def _finish(
        self,
        job_id: int,
        status: str,
        processed: int,
        errors: int,
        log: str,
        finished_at: Optional[datetime],
    ) -> None:
        try:
            with session_scope(self._session_factory) as session:
                job = self._get_running(session, job_id, status)
                job.status = status
                job.finished_at = finished_at or datetime.utcnow()
                job.processed_count = processed
                job.error_count = errors
                job.log = log
        except SQLAlchemyError as e:
            raise JobPersistenceError(
                f"Could not mark job {job_id} {status}: {e}", job_id=job_id, operation=status
            ) from e

    @staticmethod
    def _get_running(session, job_id: int, operation: str) -> SyncJob:
        job = session.get(SyncJob, job_id)
        if job is None:
            raise JobPersistenceError(f"Job {job_id} not found", job_id=job_id, operation=operation)
        # Terminal states are final
        if job.status != JOB_STATUS_RUNNING:
            raise JobPersistenceError(
                f"Job {job_id} is already {job.status}", job_id=job_id, operation=operation
            )
        return job


class EntityStore:
    """Upsert companies, branches, roles and scores."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def upsert_company(self, snapshot: EntitySnapshot, seen_at: datetime) -> Company:
        """Create or update a company keyed by orgnr.

        Scores, role flag and summary are left untouched on update;
        last_seen_at only moves forward.

        Returns:
            Detached Company row with current values
        """
        try:
            return self._upsert_company(snapshot, seen_at)
        except IntegrityError:
            # Lost an insert race on the same orgnr; the row exists now
            logger.debug("Concurrent insert for %s, retrying as update", snapshot.orgnr)
            return self._upsert_company(snapshot, seen_at)

    def _upsert_company(self, snapshot: EntitySnapshot, seen_at: datetime) -> Company:
        with session_scope(self._session_factory) as session:
            company = session.query(Company).filter(Company.orgnr == snapshot.orgnr).first()
            if company is None:
                company = Company(orgnr=snapshot.orgnr, has_roles_data=False, last_seen_at=seen_at)
                session.add(company)
            elif company.last_seen_at is None or seen_at > company.last_seen_at:
                company.last_seen_at = seen_at

            for field_name in SNAPSHOT_FIELDS:
                setattr(company, field_name, getattr(snapshot, field_name))

            session.flush()
            return company

    def get_company(self, company_id: int) -> Optional[Company]:
        with session_scope(self._session_factory) as session:
            return session.get(Company, company_id)

    def get_company_by_orgnr(self, orgnr: str) -> Optional[Company]:
        with session_scope(self._session_factory) as session:
            return session.query(Company).filter(Company.orgnr == orgnr).first()

    def company_exists(self, orgnr: str) -> bool:
        with session_scope(self._session_factory) as session:
            return session.query(Company.id).filter(Company.orgnr == orgnr).first() is not None

    def related_counts(self, company: Company) -> RelatedCounts:
        """Count branches and roles of a company."""
        with session_scope(self._session_factory) as session:
            sub_entities = (
                session.query(func.count(SubEntity.id))
                .filter(SubEntity.parent_orgnr == company.orgnr)
                .scalar()
            )
            roles = (
                session.query(func.count(CompanyRole.id))
                .filter(CompanyRole.company_id == company.id)
                .scalar()
            )
            return RelatedCounts(sub_entities=sub_entities or 0, roles=roles or 0)

    def role_types(self, company_id: int) -> List[str]:
        with session_scope(self._session_factory) as session:
            rows = (
                session.query(CompanyRole.role_type)
                .filter(CompanyRole.company_id == company_id)
                .distinct()
                .all()
            )
            return [row[0] for row in rows]

    def apply_score(self, company_id: int, result: ScoringResult) -> None:
        """Store scores and replace the explanation set in one transaction.

        Readers see either the previous or the new complete set. The company
        row is locked first so concurrent writers for one company serialize.
        """
        with session_scope(self._session_factory) as session:
            company = self._lock_company(session, company_id)
            if company is None:
                raise ValueError(f"Company {company_id} not found")

            company.overall_lead_score = result.overall
            company.use_case_fit = result.use_case_fit
            company.urgency_score = result.urgency
            company.data_quality_score = result.data_quality

            session.query(ScoreExplanation).filter(
                ScoreExplanation.company_id == company_id
            ).delete(synchronize_session=False)

            session.add_all([
                ScoreExplanation(
                    company_id=company_id,
                    signal=signal.signal,
                    weight=signal.weight,
                    reason=signal.reason,
                    active=signal.active,
                    position=position,
                )
                for position, signal in enumerate(result.signals)
            ])

    @staticmethod
    def _lock_company(session, company_id: int) -> Optional[Company]:
        # SELECT ... FOR UPDATE; SQLite has no row locks and ignores it
        return (
            session.query(Company)
            .filter(Company.id == company_id)
            .with_for_update()
            .one_or_none()
        )

    def explanations(self, company_id: int) -> List[ScoreExplanation]:
        with session_scope(self._session_factory) as session:
            return (
                session.query(ScoreExplanation)
                .filter(ScoreExplanation.company_id == company_id)
                .order_by(ScoreExplanation.position)
                .all()
            )

    def set_summary(self, company_id: int, summary: str) -> None:
        with session_scope(self._session_factory) as session:
            company = session.get(Company, company_id)
            if company is not None:
                company.ai_summary = summary

    def companies_for_roles(
        self,
        limit: int,
        orgnrs: Optional[Sequence[str]] = None,
    ) -> List[Tuple[int, str]]:
        """Select (id, orgnr) of companies whose roles should be synced.

        Without explicit orgnrs: active companies without role data.
        """
        with session_scope(self._session_factory) as session:
            query = session.query(Company.id, Company.orgnr)
            if orgnrs is not None:
                query = query.filter(Company.orgnr.in_(list(orgnrs)))
            else:
                query = query.filter(
                    Company.has_roles_data.is_(False),
                    Company.status == COMPANY_STATUS_ACTIVE,
                )
            rows = query.order_by(Company.id).limit(limit).all()
            return [(row.id, row.orgnr) for row in rows]

    def replace_roles(self, company_id: int, roles: Iterable[RoleRecord]) -> int:
        """Replace a company's roles and mark role data as loaded.

        Returns:
            Number of roles stored
        """
        with session_scope(self._session_factory) as session:
            company = self._lock_company(session, company_id)
            if company is None:
                raise ValueError(f"Company {company_id} not found")

            session.query(CompanyRole).filter(
                CompanyRole.company_id == company_id
            ).delete(synchronize_session=False)

            rows = [
                CompanyRole(
                    company_id=company_id,
                    role_type=role.role_type,
                    role_group=role.role_group,
                    person_name=role.person_name,
                    birth_date=role.birth_date,
                    raw_json=role.raw_json,
                )
                for role in roles
            ]
            session.add_all(rows)
            company.has_roles_data = True
            return len(rows)

    def upsert_sub_entity(self, record: SubEntityRecord) -> None:
        """Create or update a branch whose parent is stored locally.

        Raises:
            ParentNotFoundError: If the parent company is unknown
        """
        with session_scope(self._session_factory) as session:
            parent_exists = (
                record.parent_orgnr is not None
                and session.query(Company.id).filter(Company.orgnr == record.parent_orgnr).first()
                is not None
            )
            if not parent_exists:
                raise ParentNotFoundError(
                    f"Parent {record.parent_orgnr} of {record.orgnr} not stored",
                    parent_orgnr=record.parent_orgnr,
                )

            sub_entity = session.query(SubEntity).filter(SubEntity.orgnr == record.orgnr).first()
            if sub_entity is None:
                sub_entity = SubEntity(orgnr=record.orgnr)
                session.add(sub_entity)

            sub_entity.parent_orgnr = record.parent_orgnr
            sub_entity.name = record.name
            sub_entity.status = record.status
            sub_entity.industry_code = record.industry_code
            sub_entity.address = record.address
            sub_entity.municipality = record.municipality
            sub_entity.raw_json = record.raw_json

    def active_company_ids(self) -> List[int]:
        with session_scope(self._session_factory) as session:
            rows = (
                session.query(Company.id)
                .filter(Company.status == COMPANY_STATUS_ACTIVE)
                .order_by(Company.id)
                .all()
            )
            return [row.id for row in rows]
