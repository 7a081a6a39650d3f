"""Integration tests for the Ledger façade.

Every test runs against a scratch SQLite file, so concurrent sessions see
each other's commits the way they would against PostgreSQL.
"""

import asyncio
from datetime import date

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from growledger.middleware.exceptions import (
    ConstraintViolation,
    ContentionError,
    EntityInUse,
    EntityNotFound,
    HarvestInUse,
    InsufficientAvailableWeight,
    InvalidPatch,
    InvalidStatus,
    InvalidWeight,
    LedgerValidationError,
    PersistenceError,
)
from growledger.models.distribution import Distribution
from growledger.models.plant import Plant
from growledger.models.sequence_counter import SequenceCounter
from growledger.schemas.distribution import DistributionCreate
from growledger.schemas.extract import ExtractCreate
from growledger.schemas.harvest import HarvestCreate
from growledger.schemas.patient import PatientCreate
from growledger.schemas.plant import PlantCloneRequest, PlantCreate
from growledger.schemas.scope import AssociationCreate, EnvironmentCreate
from growledger.services import weights
from growledger.services.audit import AuditRecorder
from growledger.services.ledger import Ledger, is_unique_race

from conftest import FIXED_NOW

pytestmark = [pytest.mark.asyncio, pytest.mark.integration]


def flower(association, patient, harvest, grams, **kwargs) -> DistributionCreate:
    return DistributionCreate(
        association_id=association.id,
        patient_id=patient.id,
        product_type="flower",
        harvest_id=harvest.id,
        quantity_grams=grams,
        distribution_date=date(2025, 6, 1),
        **kwargs,
    )


async def history(ledger, entity_type, entity_id):
    return (await ledger.entity_history(entity_type, entity_id)).items


async def seed_tenant(ledger, actor, name, environment_name="Main Tent"):
    """Second association with its own environment, plant, 100g harvest and patient."""
    association = await ledger.create_association(AssociationCreate(name=name), actor)
    environment = await ledger.create_environment(
        EnvironmentCreate(association_id=association.id, name=environment_name), actor,
    )
    plant = await ledger.create_plant(
        PlantCreate(
            environment_id=environment.id, name="Mother", strain="Harlequin",
            start_date=date(2025, 1, 10),
        ),
        actor,
    )
    harvest = await ledger.create_harvest(
        HarvestCreate(plant_id=plant.id, harvest_date=date(2025, 5, 20), wet_weight_grams=100),
        actor,
    )
    patient = await ledger.create_patient(
        PatientCreate(
            association_id=association.id, name="João Lima",
            document_type="cpf", document_number="987.654.321-00",
        ),
        actor,
    )
    return association, harvest, patient


class BrokenAuditRecorder(AuditRecorder):
    """Appends entries the audit table refuses (no entity id)."""

    async def record(self, session, action, entity_type, entity_id, actor, **kwargs):
        return await super().record(session, action, entity_type, None, actor, **kwargs)


# ── Issuance ─────────────────────────────────────────────────

class TestIssuance:
    async def test_harvest_gets_scoped_number_and_one_audit_entry(self, ledger, harvest):
        assert harvest.control_number == "H-MT-2025-00001"
        assert harvest.status == "fresh"
        assert harvest.version == 1

        entries = await history(ledger, "harvest", harvest.id)
        assert len(entries) == 1
        assert entries[0].action == "create"
        assert entries[0].new_value["control_number"] == "H-MT-2025-00001"
        assert "version" not in entries[0].new_value

    async def test_rename_keeps_issued_numbers(self, ledger, actor, environment, plant):
        await ledger.rename_environment(environment.id, {"name": "Flower Room"}, actor)

        second = await ledger.create_plant(
            PlantCreate(
                environment_id=environment.id, name="Auto", strain="Critical",
                start_date=date(2025, 2, 1),
            ),
            actor,
        )
        assert second.control_number == "A-FR-2025-00002"
        reloaded = await ledger.get_entity("plant", plant.id)
        assert reloaded.control_number == "A-MT-2025-00001"

        [rename] = [e for e in await history(ledger, "environment", environment.id) if e.action == "update"]
        assert rename.changed_fields == ["name"]

    async def test_clones_draw_consecutive_numbers(self, ledger, actor, plant):
        clones = await ledger.clone_plants(plant.id, PlantCloneRequest(count=3), actor)

        assert [c.control_number for c in clones] == [
            "CL-MT-2025-00002", "CL-MT-2025-00003", "CL-MT-2025-00004",
        ]
        assert {c.parent_control_number for c in clones} == {"A-MT-2025-00001"}
        assert {c.strain for c in clones} == {"Cannatonic"}
        assert all(c.start_date == FIXED_NOW.date() for c in clones)

        page = await ledger.search_audit_log(entity_type="plant", action="create")
        assert page.total == 4

    async def test_clone_source_plant_uses_clone_prefix(self, ledger, actor, environment, plant):
        clone = await ledger.create_plant(
            PlantCreate(
                environment_id=environment.id, name="Cutting", strain="Cannatonic",
                start_date=date(2025, 3, 1), source_type="clone", mother_plant_id=plant.id,
            ),
            actor,
        )
        assert clone.control_number == "CL-MT-2025-00002"
        assert clone.parent_control_number == plant.control_number

    async def test_failed_operation_does_not_consume_a_number(
        self, ledger, actor, association, patient, harvest,
    ):
        with pytest.raises(InsufficientAvailableWeight):
            await ledger.create_distribution(flower(association, patient, harvest, 500), actor)

        distribution = await ledger.create_distribution(
            flower(association, patient, harvest, 10), actor,
        )
        assert distribution.distribution_number == "D-2025-00001"

    async def test_shared_initials_do_not_collide_across_environments(
        self, ledger, actor, association, plant,
    ):
        mother_tent = await ledger.create_environment(
            EnvironmentCreate(association_id=association.id, name="Mother Tent"), actor,
        )
        other = await ledger.create_plant(
            PlantCreate(
                environment_id=mother_tent.id, name="Mother #2", strain="Harlequin",
                start_date=date(2025, 1, 10),
            ),
            actor,
        )
        assert plant.control_number == other.control_number == "A-MT-2025-00001"

    async def test_each_association_numbers_from_one(
        self, ledger, actor, association, patient, harvest,
    ):
        first = await ledger.create_distribution(flower(association, patient, harvest, 5), actor)

        other_assoc, other_harvest, other_patient = await seed_tenant(ledger, actor, "Vida Verde")
        second = await ledger.create_distribution(
            flower(other_assoc, other_patient, other_harvest, 5), actor,
        )

        assert other_harvest.control_number == harvest.control_number == "H-MT-2025-00001"
        assert first.distribution_number == second.distribution_number == "D-2025-00001"
        assert second.association_id == other_assoc.id

    async def test_duplicate_number_in_one_environment_is_refused(
        self, ledger, actor, environment, plant,
    ):
        attempts = []

        async def work(session):
            attempts.append(1)
            session.add(Plant(
                control_number=plant.control_number,
                environment_id=environment.id,
                association_id=environment.association_id,
                name="Impostor", strain="Unknown", start_date=date(2025, 1, 1),
            ))
            await session.flush()

        with pytest.raises(ConstraintViolation) as exc_info:
            await ledger._run("duplicate_plant", work)
        assert len(attempts) == 1
        assert exc_info.value.retryable is False


# ── Weights and status ───────────────────────────────────────

class TestWeights:
    async def test_weight_recordings_advance_status(self, ledger, actor, harvest):
        dried = await ledger.record_harvest_weight(harvest.id, "dry", 80, actor)
        assert dried.status == "drying"

        cured = await ledger.record_harvest_weight(harvest.id, "final", 60, actor)
        assert cured.status == "curing"
        assert cured.version == 3

        latest = (await history(ledger, "harvest", harvest.id))[0]
        assert latest.action == "update"
        assert latest.changed_fields == ["final_weight_grams", "status"]
        assert latest.previous_value["status"] == "drying"
        assert latest.new_value["final_weight_grams"] == 60.0

        availability = await ledger.harvest_availability(harvest.id)
        assert availability.best_available_grams == 60.0
        assert availability.available_grams == 60.0

    async def test_weight_below_consumption_rejected(
        self, ledger, actor, association, patient, harvest,
    ):
        await ledger.create_distribution(flower(association, patient, harvest, 50), actor)

        with pytest.raises(InvalidWeight):
            await ledger.record_harvest_weight(harvest.id, "dry", 40, actor)

        reloaded = await ledger.get_harvest(harvest.id)
        assert reloaded.dry_weight_grams is None
        assert reloaded.status == "fresh"

    async def test_status_override(self, ledger, actor, harvest):
        processed = await ledger.set_harvest_status(harvest.id, "processed", actor)
        assert processed.status == "processed"

        # unchanged status writes nothing
        await ledger.set_harvest_status(harvest.id, "processed", actor)
        # backwards moves are allowed
        back = await ledger.set_harvest_status(harvest.id, "drying", actor, notes="mislabelled")
        assert back.status == "drying"

        entries = await history(ledger, "harvest", harvest.id)
        assert [e.action for e in entries] == ["update", "update", "create"]
        assert entries[0].notes == "mislabelled"

    async def test_unknown_status_rejected_before_store(self, ledger, actor, harvest):
        with pytest.raises(InvalidStatus):
            await ledger.set_harvest_status(harvest.id, "smoked", actor)
        assert len(await history(ledger, "harvest", harvest.id)) == 1


# ── Conservation ─────────────────────────────────────────────

class TestConservation:
    async def test_over_distribution_rejected_with_numbers(
        self, ledger, actor, association, patient, harvest,
    ):
        await ledger.record_harvest_weight(harvest.id, "dry", 20, actor)
        await ledger.record_harvest_weight(harvest.id, "final", 18, actor)

        with pytest.raises(InsufficientAvailableWeight) as exc_info:
            await ledger.create_distribution(flower(association, patient, harvest, 25), actor)
        assert exc_info.value.message == (
            "Cannot distribute 25g from H-MT-2025-00001, only 18g available"
        )

        reloaded = await ledger.get_harvest(harvest.id)
        assert reloaded.distributed_grams == 0.0

    async def test_distribution_and_extraction_share_the_budget(
        self, ledger, actor, association, patient, harvest,
    ):
        await ledger.create_distribution(flower(association, patient, harvest, 70), actor)
        with pytest.raises(InsufficientAvailableWeight) as exc_info:
            await ledger.create_extract(
                ExtractCreate(
                    association_id=association.id, name="Oil batch",
                    extract_type="oil", extraction_method="ethanol",
                    extraction_date=date(2025, 6, 1),
                    sources=[{"harvest_id": harvest.id, "grams": 31}],
                ),
                actor,
            )
        assert exc_info.value.available == 30.0

    async def test_concurrent_distributions_never_overdraw(
        self, ledger, actor, association, patient, harvest,
    ):
        results = await asyncio.gather(
            ledger.create_distribution(flower(association, patient, harvest, 60), actor),
            ledger.create_distribution(flower(association, patient, harvest, 60), actor),
            return_exceptions=True,
        )
        succeeded = [r for r in results if isinstance(r, Distribution)]
        refused = [r for r in results if isinstance(r, InsufficientAvailableWeight)]
        assert len(succeeded) == 1
        assert len(refused) == 1

        reloaded = await ledger.get_harvest(harvest.id)
        assert reloaded.distributed_grams == 60.0

    async def test_stale_snapshot_cannot_overwrite(self, session_factory, harvest):
        async with session_factory() as first, session_factory() as second:
            a = await weights.load_harvest(first, harvest.id)
            b = await weights.load_harvest(second, harvest.id)

            weights.apply_allocation(a, "distribution", 60)
            await first.commit()

            # checked against the old snapshot, so it passes locally...
            weights.apply_allocation(b, "distribution", 60)
            # ...but the versioned UPDATE refuses it
            with pytest.raises(StaleDataError):
                await second.commit()

        async with session_factory() as fresh:
            current = await weights.load_harvest(fresh, harvest.id)
            with pytest.raises(InsufficientAvailableWeight):
                weights.apply_allocation(current, "distribution", 60)

    async def test_replayed_request_allocates_once(
        self, ledger, actor, association, patient, harvest,
    ):
        first = await ledger.create_distribution(
            flower(association, patient, harvest, 10, request_id="req-1"), actor,
        )
        again = await ledger.create_distribution(
            flower(association, patient, harvest, 10, request_id="req-1"), actor,
        )
        assert again.id == first.id
        assert again.distribution_number == first.distribution_number

        reloaded = await ledger.get_harvest(harvest.id)
        assert reloaded.distributed_grams == 10.0
        assert len(await history(ledger, "distribution", first.id)) == 1

    async def test_request_ids_are_scoped_to_the_association(
        self, ledger, actor, association, patient, harvest,
    ):
        first = await ledger.create_distribution(
            flower(association, patient, harvest, 10, request_id="req-1"), actor,
        )
        other_assoc, other_harvest, other_patient = await seed_tenant(ledger, actor, "Vida Verde")
        second = await ledger.create_distribution(
            flower(other_assoc, other_patient, other_harvest, 10, request_id="req-1"), actor,
        )

        assert second.id != first.id
        assert second.association_id == other_assoc.id
        assert second.patient_name == "João Lima"
        assert (await ledger.get_harvest(other_harvest.id)).distributed_grams == 10.0
        assert (await ledger.get_harvest(harvest.id)).distributed_grams == 10.0

    async def test_inactive_patient_refused(self, ledger, actor, association, patient, harvest):
        await ledger.update_entity("patient", patient.id, {"status": "inactive"}, actor)

        with pytest.raises(LedgerValidationError) as exc_info:
            await ledger.create_distribution(flower(association, patient, harvest, 5), actor)
        assert exc_info.value.error_code == "PATIENT_INACTIVE"


# ── Extracts ─────────────────────────────────────────────────

class TestExtracts:
    async def test_equal_split_across_harvests(self, ledger, actor, association, plant, harvest):
        others = [
            await ledger.create_harvest(
                HarvestCreate(plant_id=plant.id, harvest_date=date(2025, 5, 21), wet_weight_grams=50),
                actor,
            )
            for _ in range(2)
        ]
        harvests = [harvest, *others]

        extract = await ledger.create_extract(
            ExtractCreate(
                association_id=association.id, name="Full spectrum",
                extract_type="full_spectrum", extraction_method="co2",
                extraction_date=date(2025, 6, 1),
                harvest_ids=[h.id for h in harvests], input_weight_grams=10,
            ),
            actor,
        )
        assert extract.control_number == "EX-2025-00001"
        assert extract.input_weight_grams == 10.0
        assert [s.grams for s in extract.sources] == [3.333, 3.333, 3.334]

        drawn = [(await ledger.get_harvest(h.id)).extracted_grams for h in harvests]
        assert drawn == [3.333, 3.333, 3.334]

    async def test_distributed_extract_cannot_be_deleted(
        self, ledger, actor, association, patient, harvest,
    ):
        extract = await ledger.create_extract(
            ExtractCreate(
                association_id=association.id, name="Oil", extract_type="oil",
                extraction_method="olive_oil", extraction_date=date(2025, 6, 1),
                sources=[{"harvest_id": harvest.id, "grams": 40}],
            ),
            actor,
        )
        handed_out = await ledger.create_distribution(
            DistributionCreate(
                association_id=association.id, patient_id=patient.id,
                product_type="extract", extract_id=extract.id, quantity_ml=10,
                distribution_date=date(2025, 6, 2),
            ),
            actor,
        )
        assert handed_out.extract_control_number == "EX-2025-00001"

        with pytest.raises(EntityInUse) as exc_info:
            await ledger.delete_entity("extract", extract.id, actor)
        assert exc_info.value.blockers == [handed_out.distribution_number]

        await ledger.delete_entity("distribution", handed_out.id, actor)
        await ledger.delete_entity("extract", extract.id, actor)

        reloaded = await ledger.get_harvest(harvest.id)
        assert reloaded.extracted_grams == 0.0


# ── Updates and deletes ──────────────────────────────────────

class TestUpdateDelete:
    async def test_update_audits_changed_fields_only(self, ledger, actor, patient):
        await ledger.update_entity("patient", patient.id, {"name": patient.name}, actor)
        assert len(await history(ledger, "patient", patient.id)) == 1

        updated = await ledger.update_entity(
            "patient", patient.id, {"phone": "+55 11 99999-0000", "name": patient.name}, actor,
        )
        assert updated.phone == "+55 11 99999-0000"

        latest = (await history(ledger, "patient", patient.id))[0]
        assert latest.changed_fields == ["phone"]
        assert latest.actor_id == actor.user_id
        assert latest.entity_display_name == patient.name

    async def test_protected_fields_cannot_be_patched(self, ledger, actor, harvest):
        with pytest.raises(InvalidPatch) as exc_info:
            await ledger.update_entity("harvest", harvest.id, {"distributed_grams": 0}, actor)
        assert "distributed_grams" in exc_info.value.message

    async def test_required_fields_cannot_be_cleared(self, ledger, actor, harvest, patient):
        with pytest.raises(InvalidPatch) as exc_info:
            await ledger.update_entity("harvest", harvest.id, {"purpose": None}, actor)
        assert "purpose cannot be cleared" in exc_info.value.message

        with pytest.raises(InvalidPatch):
            await ledger.update_entity("patient", patient.id, {"name": None}, actor)

        assert (await ledger.get_harvest(harvest.id)).purpose == "patient"
        assert len(await history(ledger, "harvest", harvest.id)) == 1

    async def test_optional_fields_can_be_cleared(self, ledger, actor, harvest):
        await ledger.update_entity("harvest", harvest.id, {"storage_location": "Vault A"}, actor)
        cleared = await ledger.update_entity(
            "harvest", harvest.id, {"storage_location": None}, actor,
        )
        assert cleared.storage_location is None

    async def test_unknown_entity_type(self, ledger, actor):
        with pytest.raises(LedgerValidationError) as exc_info:
            await ledger.update_entity("greenhouse", "x", {}, actor)
        assert exc_info.value.error_code == "INVALID_ENTITY_TYPE"

    async def test_consumed_harvest_cannot_be_deleted(
        self, ledger, actor, association, patient, harvest,
    ):
        distribution = await ledger.create_distribution(
            flower(association, patient, harvest, 10), actor,
        )

        with pytest.raises(HarvestInUse) as exc_info:
            await ledger.delete_entity("harvest", harvest.id, actor)
        error = exc_info.value
        assert error.status_code == 409
        assert error.blockers == ["D-2025-00001"]
        assert "10g already consumed" in error.message
        assert error.details["hint"] == "Delete the distributions and extracts drawing from it first."

        await ledger.delete_entity("distribution", distribution.id, actor)

        released = await ledger.get_entity("distribution", distribution.id, include_deleted=True)
        assert released.deleted_at == FIXED_NOW
        assert [s.released_at for s in released.sources] == [FIXED_NOW]

        await ledger.delete_entity("harvest", harvest.id, actor)
        with pytest.raises(EntityNotFound):
            await ledger.get_harvest(harvest.id)

        actions = [e.action for e in await history(ledger, "harvest", harvest.id)]
        assert actions == ["delete", "create"]

    async def test_environment_with_plants_cannot_be_deleted(
        self, ledger, actor, environment, plant,
    ):
        with pytest.raises(EntityInUse) as exc_info:
            await ledger.delete_entity("environment", environment.id, actor)
        assert exc_info.value.blockers == [plant.control_number]

        await ledger.delete_entity("plant", plant.id, actor)
        await ledger.delete_entity("environment", environment.id, actor)


# ── Unit of work ─────────────────────────────────────────────

class TestUnitOfWork:
    async def test_version_conflict_is_retried(self, session_factory):
        ledger = Ledger(session_factory, max_attempts=3)
        attempts = []

        async def work(session):
            attempts.append(1)
            if len(attempts) == 1:
                raise StaleDataError("concurrent update")
            return "done"

        assert await ledger._run("test", work) == "done"
        assert len(attempts) == 2

    async def test_contention_after_max_attempts(self, session_factory):
        ledger = Ledger(session_factory, max_attempts=2)
        attempts = []

        async def work(session):
            attempts.append(1)
            raise StaleDataError("concurrent update")

        with pytest.raises(ContentionError) as exc_info:
            await ledger._run("test", work)
        assert len(attempts) == 2
        assert exc_info.value.retryable is True

    async def test_store_failure_becomes_persistence_error(self, session_factory):
        ledger = Ledger(session_factory)

        async def work(session):
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))

        with pytest.raises(PersistenceError) as exc_info:
            await ledger._run("test", work)
        assert exc_info.value.status_code == 503

    async def test_constraint_violation_is_not_retried(self, session_factory):
        ledger = Ledger(session_factory, max_attempts=3)
        attempts = []

        async def work(session):
            attempts.append(1)
            session.add(SequenceCounter(scope_id="scope-1", counter_name="plant", value=-1))
            await session.flush()

        with pytest.raises(ConstraintViolation) as exc_info:
            await ledger._run("test", work)
        assert len(attempts) == 1
        assert isinstance(exc_info.value, PersistenceError)
        assert exc_info.value.error_code == "CONSTRAINT_VIOLATION"

    async def test_request_id_race_is_retried(self, session_factory):
        ledger = Ledger(session_factory, max_attempts=3)
        attempts = []

        async def work(session):
            attempts.append(1)
            if len(attempts) == 1:
                raise IntegrityError(
                    "INSERT INTO distributions", {},
                    Exception(
                        "UNIQUE constraint failed: "
                        "distributions.association_id, distributions.request_id"
                    ),
                )
            return "replayed"

        assert await ledger._run("test", work) == "replayed"
        assert len(attempts) == 2

    @pytest.mark.parametrize("message,race", [
        ('duplicate key value violates unique constraint '
         '"uq_distributions_association_request"', True),
        ('duplicate key value violates unique constraint "sequence_counters_pkey"', True),
        ("UNIQUE constraint failed: extracts.association_id, extracts.request_id", True),
        ("UNIQUE constraint failed: plants.environment_id, plants.control_number", False),
        ("CHECK constraint failed: ck_sequence_counters_value_nonneg", False),
        ('insert or update on table "harvests" violates foreign key constraint', False),
    ])
    async def test_only_known_keys_count_as_races(self, message, race):
        assert is_unique_race(IntegrityError("stmt", {}, Exception(message))) is race

    async def test_audit_failure_rolls_back_distribution(
        self, session_factory, ledger, actor, association, patient, harvest,
    ):
        broken = Ledger(session_factory, recorder=BrokenAuditRecorder(), clock=lambda: FIXED_NOW)

        with pytest.raises(PersistenceError):
            await broken.create_distribution(flower(association, patient, harvest, 10), actor)

        reloaded = await ledger.get_harvest(harvest.id)
        assert reloaded.distributed_grams == 0.0
        assert reloaded.status == "fresh"
        async with session_factory() as session:
            assert await session.scalar(select(func.count(Distribution.id))) == 0
            assert await session.scalar(
                select(SequenceCounter.value).where(
                    SequenceCounter.scope_id == association.id,
                    SequenceCounter.counter_name == "distribution",
                )
            ) is None

        distribution = await ledger.create_distribution(
            flower(association, patient, harvest, 10), actor,
        )
        assert distribution.distribution_number == "D-2025-00001"

    async def test_audit_failure_rolls_back_weight(self, session_factory, ledger, actor, harvest):
        broken = Ledger(session_factory, recorder=BrokenAuditRecorder(), clock=lambda: FIXED_NOW)

        with pytest.raises(PersistenceError):
            await broken.record_harvest_weight(harvest.id, "dry", 40, actor)

        reloaded = await ledger.get_harvest(harvest.id)
        assert reloaded.dry_weight_grams is None
        assert reloaded.status == "fresh"
        assert reloaded.version == 1
        assert len(await history(ledger, "harvest", harvest.id)) == 1
