"""Unit tests for entity persistence."""

import pytest
from datetime import datetime

from sqlalchemy.exc import IntegrityError

from leadscout.core.exceptions import ParentNotFoundError
from leadscout.db.models import Company
from leadscout.db.session import session_scope
from leadscout.db.stores import EntityStore
from leadscout.registry.base import EntitySnapshot, RoleRecord, SubEntityRecord
from leadscout.scoring.engine import ScoreSignal, ScoringResult

SEEN = datetime(2025, 6, 1, 8, 0)


def snapshot(orgnr="912345678", **overrides):
    values = dict(orgnr=orgnr, name="Nordic Freight AS", status="active", raw_json={"x": 1})
    values.update(overrides)
    return EntitySnapshot(**values)


def result(overall, active):
    signals = [
        ScoreSignal("company_active", 20, "Company is actively operating", active),
        ScoreSignal("has_website", 8, "Has web presence", False),
    ]
    return ScoringResult(overall, 50, 40, 30, signals, [])


class RacingEntityStore(EntityStore):
    """Another writer commits the same orgnr between this writer's lookup and insert."""

    def __init__(self, session_factory):
        super().__init__(session_factory)
        self.attempts = 0

    def _upsert_company(self, snapshot, seen_at):
        self.attempts += 1
        if self.attempts == 1:
            with session_scope(self._session_factory) as session:
                session.add(Company(orgnr=snapshot.orgnr, name="Competing Insert AS"))
            # The first lookup missed the row, so this attempt inserts too
            with session_scope(self._session_factory) as session:
                session.add(Company(orgnr=snapshot.orgnr, name=snapshot.name))
        return super()._upsert_company(snapshot, seen_at)


class TestUpsertCompany:
    """Tests for company upserts keyed by orgnr."""

    def test_insert_then_update(self, entity_store):
        first = entity_store.upsert_company(snapshot(), SEEN)
        second = entity_store.upsert_company(snapshot(name="Nordic Freight Group AS"), SEEN)

        assert second.id == first.id
        assert entity_store.get_company(first.id).name == "Nordic Freight Group AS"

    def test_last_seen_never_moves_backwards(self, entity_store):
        company = entity_store.upsert_company(snapshot(), SEEN)
        entity_store.upsert_company(snapshot(), datetime(2025, 5, 1))

        assert entity_store.get_company(company.id).last_seen_at == SEEN

    def test_update_keeps_scores_and_role_flag(self, entity_store):
        company = entity_store.upsert_company(snapshot(), SEEN)
        entity_store.apply_score(company.id, result(20, True))
        entity_store.replace_roles(company.id, [RoleRecord(role_type="Daglig leder")])

        entity_store.upsert_company(snapshot(), datetime(2025, 6, 2))

        stored = entity_store.get_company(company.id)
        assert stored.overall_lead_score == 20
        assert stored.has_roles_data is True

    def test_lost_insert_race_falls_back_to_update(self, session_factory):
        store = RacingEntityStore(session_factory)

        company = store.upsert_company(snapshot(), SEEN)

        assert store.attempts == 2
        with session_scope(session_factory) as session:
            rows = session.query(Company).filter(Company.orgnr == "912345678").all()
        assert [row.id for row in rows] == [company.id]
        assert rows[0].name == "Nordic Freight AS"

    def test_second_integrity_error_propagates(self, session_factory):
        class AlwaysConflicting(EntityStore):
            def _upsert_company(self, snapshot, seen_at):
                raise IntegrityError("INSERT INTO companies", {}, Exception("UNIQUE constraint failed"))

        with pytest.raises(IntegrityError):
            AlwaysConflicting(session_factory).upsert_company(snapshot(), SEEN)


class TestScores:
    """Tests for score and explanation replacement."""

    def test_apply_score_replaces_explanations(self, entity_store):
        company = entity_store.upsert_company(snapshot(), SEEN)
        entity_store.apply_score(company.id, result(20, True))
        entity_store.apply_score(company.id, result(0, False))

        stored = entity_store.get_company(company.id)
        explanations = entity_store.explanations(company.id)
        assert stored.overall_lead_score == 0
        assert stored.use_case_fit == 50
        assert len(explanations) == 2
        assert explanations[0].active is False

    def test_apply_score_unknown_company(self, entity_store):
        with pytest.raises(ValueError):
            entity_store.apply_score(12345, result(0, False))


class TestSubEntities:
    """Tests for branch upserts."""

    def test_unknown_parent_raises(self, entity_store):
        record = SubEntityRecord(orgnr="973000001", parent_orgnr="999", name="Branch")
        with pytest.raises(ParentNotFoundError) as exc_info:
            entity_store.upsert_sub_entity(record)
        assert exc_info.value.parent_orgnr == "999"

    def test_upsert_updates_existing_branch(self, entity_store):
        company = entity_store.upsert_company(snapshot("1"), SEEN)
        entity_store.upsert_sub_entity(SubEntityRecord(orgnr="11", parent_orgnr="1", name="Old"))
        entity_store.upsert_sub_entity(SubEntityRecord(orgnr="11", parent_orgnr="1", name="New"))

        assert entity_store.related_counts(company).sub_entities == 1


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
