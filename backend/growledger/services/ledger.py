"""Ledger façade — every write to the cultivation-to-distribution ledger.

Each public mutation runs as ONE unit of work:

  1. issue any control number        (SequenceIssuer)
  2. load and mutate the harvest(s)  (weights / status machine)
  3. persist the entity
  4. append the audit entry          (AuditRecorder)

all inside a single database transaction.  Any failure rolls everything
back, including the counter increment.

Concurrent writers to the same harvest are serialized by the harvest's
``version`` column: the loser's flush raises StaleDataError and the whole
unit of work is retried from a fresh read, up to ``ledger_max_attempts``
times, then surfaced as ContentionError.  Unique-key races (two replays of
the same ``request_id``) take the same retry path and end as a replay.  Any
other constraint violation is permanent and surfaces as PersistenceError.

Validation that needs no data (weights > 0, known stages and statuses,
patch shape) happens before a session is opened.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from growledger.config import settings
from growledger.database import async_session
from growledger.middleware.exceptions import (
    ConstraintViolation,
    ContentionError,
    EntityInUse,
    EntityNotFound,
    GrowLedgerException,
    HarvestInUse,
    InvalidPatch,
    LedgerValidationError,
    PersistenceError,
    ScopeNotFound,
)
from growledger.models.allocation import HarvestAllocation
from growledger.models.distribution import Distribution
from growledger.models.extract import Extract
from growledger.models.harvest import Harvest, HarvestStatus
from growledger.models.patient import Patient
from growledger.models.plant import Plant
from growledger.models.scope import Association, Environment
from growledger.schemas.distribution import DistributionCreate, DistributionOut, DistributionUpdate
from growledger.schemas.extract import ExtractCreate, ExtractOut, ExtractUpdate
from growledger.schemas.harvest import HarvestAvailability, HarvestCreate, HarvestOut, HarvestUpdate
from growledger.schemas.patient import PatientCreate, PatientOut, PatientUpdate
from growledger.schemas.plant import PlantCloneRequest, PlantCreate, PlantOut, PlantUpdate
from growledger.schemas.scope import AssociationCreate, EnvironmentCreate, EnvironmentOut, EnvironmentUpdate
from growledger.services import status as status_machine
from growledger.services import weights
from growledger.services.audit import Actor, AuditFilters, AuditPage, AuditRecorder, snapshot
from growledger.services.sequence import SequenceIssuer
from growledger.utils import locks
from growledger.utils.numbering import (
    COUNTER_NAMES,
    PREFIXES,
    ControlNumberKind,
    scope_tag_for,
)

logger = logging.getLogger("growledger.ledger")

T = TypeVar("T")


# ── Entity registry ────────────────────────────────────────────


@dataclass(frozen=True)
class EntityType:
    model: type
    out: type[BaseModel]
    patch: type[BaseModel]
    display_attr: str


ENTITY_TYPES: dict[str, EntityType] = {
    "environment": EntityType(Environment, EnvironmentOut, EnvironmentUpdate, "name"),
    "plant": EntityType(Plant, PlantOut, PlantUpdate, "control_number"),
    "harvest": EntityType(Harvest, HarvestOut, HarvestUpdate, "control_number"),
    "patient": EntityType(Patient, PatientOut, PatientUpdate, "name"),
    "distribution": EntityType(Distribution, DistributionOut, DistributionUpdate, "distribution_number"),
    "extract": EntityType(Extract, ExtractOut, ExtractUpdate, "control_number"),
}


def entity_type_for(name: str) -> EntityType:
    try:
        return ENTITY_TYPES[name]
    except KeyError:
        raise LedgerValidationError(
            f"Unknown entity type: {name!r} (expected one of {', '.join(ENTITY_TYPES)})",
            error_code="INVALID_ENTITY_TYPE",
        ) from None


# Unique keys two concurrent writers can legitimately collide on.  Postgres
# reports the constraint name, SQLite the table.column list.
RACE_KEYS = (
    "uq_distributions_association_request",
    "uq_extracts_association_request",
    "distributions.request_id",
    "extracts.request_id",
    "sequence_counters_pkey",
    "sequence_counters.scope_id",
)


def is_unique_race(exc: IntegrityError) -> bool:
    """True when the violation is a lost race a retry resolves."""
    message = str(exc.orig)
    return any(key in message for key in RACE_KEYS)


def _validate_patch(entity_type: str, patch: BaseModel | dict) -> dict:
    """Check a partial update against the entity's patch model; return set fields."""
    registered = entity_type_for(entity_type)
    schema = registered.patch
    if isinstance(patch, BaseModel):
        if not isinstance(patch, schema):
            raise InvalidPatch(entity_type, f"expected {schema.__name__}")
        changes = patch.model_dump(exclude_unset=True)
    else:
        try:
            changes = schema.model_validate(patch).model_dump(exclude_unset=True)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(loc) for loc in err['loc']) or 'body'}: {err['msg']}"
                for err in exc.errors()
            )
            raise InvalidPatch(entity_type, problems) from None

    columns = registered.model.__table__.columns
    required = sorted(
        name for name, value in changes.items()
        if value is None and name in columns and not columns[name].nullable
    )
    if required:
        raise InvalidPatch(entity_type, f"{', '.join(required)} cannot be cleared")
    return changes


class Ledger:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session,
        issuer: SequenceIssuer | None = None,
        recorder: AuditRecorder | None = None,
        max_attempts: int | None = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self.session_factory = session_factory
        self.issuer = issuer or SequenceIssuer(clock=clock)
        self.recorder = recorder or AuditRecorder()
        self.max_attempts = max_attempts or settings.ledger_max_attempts
        self.clock = clock

    # ── Unit of work ──────────────────────────────────────────

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``work`` in one transaction, retrying version conflicts."""
        for attempt in range(1, self.max_attempts + 1):
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        result = await work(session)
                logger.info("%s committed", operation)
                return result
            except StaleDataError:
                logger.warning(
                    "%s: concurrent update, retrying (attempt %d/%d)",
                    operation, attempt, self.max_attempts,
                )
            except GrowLedgerException:
                raise
            except IntegrityError as exc:
                if not is_unique_race(exc):
                    logger.error("%s rejected by a constraint", operation, exc_info=True)
                    raise ConstraintViolation() from exc
                logger.warning(
                    "%s: unique-key race, retrying (attempt %d/%d)",
                    operation, attempt, self.max_attempts,
                    exc_info=True,
                )
            except SQLAlchemyError as exc:
                logger.error("%s failed in the store", operation, exc_info=True)
                raise PersistenceError() from exc

        logger.warning("%s: giving up after %d attempts", operation, self.max_attempts)
        raise ContentionError()

    async def _read(self, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with self.session_factory() as session:
                return await work(session)
        except GrowLedgerException:
            raise
        except SQLAlchemyError as exc:
            logger.error("Ledger read failed", exc_info=True)
            raise PersistenceError() from exc

    async def _audit(
        self,
        session: AsyncSession,
        action: str,
        entity_type: str,
        entity,
        actor: Actor,
        before: dict | None = None,
        notes: str | None = None,
    ) -> None:
        """Flush the entity change, then append its audit entry."""
        await session.flush()
        registered = ENTITY_TYPES[entity_type]
        after = snapshot(registered.out, entity) if action != "delete" else None
        await self.recorder.record(
            session,
            action,
            entity_type,
            entity.id,
            actor,
            before=before,
            after=after,
            display_name=getattr(entity, registered.display_attr, None),
            notes=notes,
        )

    # ── Lookups inside a unit of work ─────────────────────────

    async def _live(self, session: AsyncSession, entity_type: str, entity_id: str):
        model = ENTITY_TYPES[entity_type].model
        entity = await session.scalar(
            select(model).where(model.id == entity_id, model.deleted_at.is_(None))
        )
        if entity is None:
            raise EntityNotFound(entity_type, entity_id)
        return entity

    async def _environment(self, session: AsyncSession, environment_id: str) -> Environment:
        env = await session.scalar(
            select(Environment).where(
                Environment.id == environment_id,
                Environment.deleted_at.is_(None),
            )
        )
        if env is None:
            raise ScopeNotFound(environment_id)
        return env

    async def _association(self, session: AsyncSession, association_id: str) -> Association:
        assoc = await session.get(Association, association_id)
        if assoc is None:
            raise ScopeNotFound(association_id)
        return assoc

    async def _patient(
        self, session: AsyncSession, patient_id: str, association_id: str,
    ) -> Patient:
        patient = await self._live(session, "patient", patient_id)
        if patient.association_id != association_id:
            raise EntityNotFound("patient", patient_id)
        return patient

    async def _issue(
        self,
        session: AsyncSession,
        kind: ControlNumberKind,
        scope_id: str,
        scope_name: str | None = None,
        count: int = 1,
    ) -> list[str]:
        tag = scope_tag_for(scope_name) if scope_name is not None else None
        numbers = await self.issuer.issue_many(
            session, scope_id, COUNTER_NAMES[kind], PREFIXES[kind], count, scope_tag=tag,
        )
        return [str(n) for n in numbers]

    # ── Scopes ────────────────────────────────────────────────

    async def create_association(self, data: AssociationCreate, actor: Actor) -> Association:
        async def work(session: AsyncSession) -> Association:
            assoc = Association(name=data.name, created_by=actor.user_id)
            session.add(assoc)
            await session.flush()
            return assoc

        return await self._run("create_association", work)

    async def create_environment(self, data: EnvironmentCreate, actor: Actor) -> Environment:
        scope_tag_for(data.name)

        async def work(session: AsyncSession) -> Environment:
            await self._association(session, data.association_id)
            env = Environment(
                association_id=data.association_id,
                name=data.name,
                type=data.type,
                notes=data.notes,
                created_by=actor.user_id,
            )
            session.add(env)
            await self._audit(session, "create", "environment", env, actor)
            return env

        return await self._run("create_environment", work)

    async def rename_environment(
        self, environment_id: str, patch: EnvironmentUpdate | dict, actor: Actor,
    ) -> Environment:
        """Rename or re-describe an environment.

        Numbers already issued keep the old initials; only numbers issued
        afterwards use the new name.
        """
        return await self.update_entity("environment", environment_id, patch, actor)

    # ── Plants ────────────────────────────────────────────────

    async def create_plant(self, data: PlantCreate, actor: Actor) -> Plant:
        async def work(session: AsyncSession) -> Plant:
            env = await self._environment(session, data.environment_id)
            mother = None
            if data.mother_plant_id:
                mother = await self._live(session, "plant", data.mother_plant_id)

            kind = ControlNumberKind.CLONE if data.source_type == "clone" else ControlNumberKind.PLANT
            [number] = await self._issue(session, kind, env.id, env.name)

            plant = Plant(
                control_number=number,
                environment_id=env.id,
                association_id=env.association_id,
                name=data.name,
                strain=data.strain,
                start_date=data.start_date,
                current_stage=data.current_stage,
                source_type=data.source_type,
                mother_plant_id=mother.id if mother else None,
                parent_control_number=mother.control_number if mother else None,
                genetic_lineage=data.genetic_lineage,
                is_mother_plant=data.is_mother_plant,
                notes=data.notes,
                created_by=actor.user_id,
            )
            session.add(plant)
            await self._audit(session, "create", "plant", plant, actor)
            return plant

        return await self._run("create_plant", work)

    async def clone_plants(
        self, mother_plant_id: str, request: PlantCloneRequest, actor: Actor,
    ) -> list[Plant]:
        """Take ``count`` clones from a mother plant.

        Clones inherit strain and lineage and draw consecutive numbers from
        the environment's plant counter in one step.  Each clone gets its
        own audit entry.
        """
        async def work(session: AsyncSession) -> list[Plant]:
            mother = await self._live(session, "plant", mother_plant_id)
            env = await self._environment(session, request.environment_id or mother.environment_id)
            if env.association_id != mother.association_id:
                raise LedgerValidationError(
                    "Clones must stay within the mother plant's association",
                    error_code="CROSS_ASSOCIATION_CLONE",
                )

            numbers = await self._issue(
                session, ControlNumberKind.CLONE, env.id, env.name, count=request.count,
            )
            start_date = request.start_date or self.clock().date()
            clones = []
            for index, number in enumerate(numbers, start=1):
                clone = Plant(
                    control_number=number,
                    environment_id=env.id,
                    association_id=env.association_id,
                    name=f"{mother.name} #{index}" if request.count > 1 else mother.name,
                    strain=mother.strain,
                    start_date=start_date,
                    source_type="clone",
                    mother_plant_id=mother.id,
                    parent_control_number=mother.control_number,
                    genetic_lineage=mother.genetic_lineage or mother.strain,
                    is_mother_plant=False,
                    notes=request.notes,
                    created_by=actor.user_id,
                )
                session.add(clone)
                clones.append(clone)

            for clone in clones:
                await self._audit(
                    session, "create", "plant", clone, actor,
                    notes=f"Clone of {mother.control_number}",
                )
            return clones

        return await self._run("clone_plants", work)

    # ── Harvests ──────────────────────────────────────────────

    async def create_harvest(self, data: HarvestCreate, actor: Actor) -> Harvest:
        wet = weights.validate_grams(data.wet_weight_grams, "Wet weight")

        async def work(session: AsyncSession) -> Harvest:
            plant = await self._live(session, "plant", data.plant_id)
            env = await self._environment(session, plant.environment_id)
            if data.destination_patient_id:
                await self._patient(session, data.destination_patient_id, plant.association_id)

            [number] = await self._issue(session, ControlNumberKind.HARVEST, env.id, env.name)
            harvest = Harvest(
                control_number=number,
                plant_id=plant.id,
                environment_id=env.id,
                association_id=plant.association_id,
                harvest_date=data.harvest_date,
                wet_weight_grams=wet,
                trim_weight_grams=data.trim_weight_grams,
                distributed_grams=0.0,
                extracted_grams=0.0,
                status=HarvestStatus.FRESH.value,
                purpose=data.purpose,
                destination_patient_id=data.destination_patient_id,
                quality_grade=data.quality_grade,
                storage_location=data.storage_location,
                notes=data.notes,
                created_by=actor.user_id,
            )
            session.add(harvest)
            await self._audit(session, "create", "harvest", harvest, actor)
            return harvest

        return await self._run("create_harvest", work)

    async def record_harvest_weight(
        self, harvest_id: str, stage: str, grams: float, actor: Actor,
    ) -> Harvest:
        weights.validate_stage(stage)
        weights.validate_grams(grams)

        async def work(session: AsyncSession) -> Harvest:
            harvest = await weights.load_harvest(session, harvest_id)
            before = snapshot(HarvestOut, harvest)
            weights.apply_weight(harvest, stage, grams)
            await self._audit(session, "update", "harvest", harvest, actor, before=before)
            return harvest

        return await self._run("record_harvest_weight", work)

    async def set_harvest_status(
        self, harvest_id: str, status: str, actor: Actor, notes: str | None = None,
    ) -> Harvest:
        status_machine.parse_status(status)

        async def work(session: AsyncSession) -> Harvest:
            harvest = await weights.load_harvest(session, harvest_id)
            before = snapshot(HarvestOut, harvest)
            if weights.apply_status(harvest, status):
                await self._audit(
                    session, "update", "harvest", harvest, actor, before=before, notes=notes,
                )
            return harvest

        return await self._run("set_harvest_status", work)

    async def get_harvest(self, harvest_id: str) -> Harvest:
        return await self.get_entity("harvest", harvest_id)

    async def harvest_availability(self, harvest_id: str) -> HarvestAvailability:
        async def work(session: AsyncSession) -> HarvestAvailability:
            harvest = await weights.load_harvest(session, harvest_id)
            return HarvestAvailability(**weights.availability(harvest))

        return await self._read(work)

    # ── Consumers ─────────────────────────────────────────────

    async def _allocate(
        self,
        session: AsyncSession,
        association_id: str,
        kind: str,
        sources: list[tuple[str, float]],
    ) -> list[HarvestAllocation]:
        allocations = []
        for harvest_id, grams in sources:
            harvest = await weights.load_harvest(session, harvest_id)
            if harvest.association_id != association_id:
                raise EntityNotFound("harvest", harvest_id)
            weights.apply_allocation(harvest, kind, grams)
            allocations.append(HarvestAllocation(
                harvest_id=harvest.id,
                harvest_control_number=harvest.control_number,
                kind=kind,
                grams=weights.quantize(grams),
            ))
        return allocations

    async def _replay(
        self, session: AsyncSession, model, association_id: str, request_id: str | None,
    ):
        if not request_id:
            return None
        existing = await session.scalar(
            select(model).where(
                model.association_id == association_id,
                model.request_id == request_id,
            )
        )
        if existing is not None:
            logger.info("Replayed request %s -> %s", request_id, existing.id)
        return existing

    async def create_distribution(self, data: DistributionCreate, actor: Actor) -> Distribution:
        """Record a distribution and draw its grams from the source harvests.

        Replaying a committed ``request_id`` returns the existing
        distribution without allocating again.
        """
        sources = [
            (s.harvest_id, weights.validate_grams(s.grams, "Distributed weight"))
            for s in data.sources
        ]

        async def work(session: AsyncSession) -> Distribution:
            existing = await self._replay(
                session, Distribution, data.association_id, data.request_id,
            )
            if existing is not None:
                return existing

            await self._association(session, data.association_id)
            patient = await self._patient(session, data.patient_id, data.association_id)
            if patient.status == "inactive":
                raise LedgerValidationError(
                    f"Patient {patient.name} is inactive",
                    error_code="PATIENT_INACTIVE",
                )
            extract = None
            if data.extract_id:
                extract = await self._live(session, "extract", data.extract_id)
                if extract.association_id != data.association_id:
                    raise EntityNotFound("extract", data.extract_id)

            [number] = await self._issue(
                session, ControlNumberKind.DISTRIBUTION, data.association_id,
            )
            allocations = await self._allocate(
                session, data.association_id, "distribution", sources,
            )
            distribution = Distribution(
                distribution_number=number,
                request_id=data.request_id,
                association_id=data.association_id,
                patient_id=patient.id,
                patient_name=patient.name,
                product_type=data.product_type,
                product_description=data.product_description,
                extract_id=extract.id if extract else None,
                extract_control_number=extract.control_number if extract else None,
                quantity_grams=(
                    weights.quantize(sum(grams for _, grams in sources))
                    if sources else data.quantity_grams
                ),
                quantity_ml=data.quantity_ml,
                quantity_units=data.quantity_units,
                distribution_date=data.distribution_date,
                received_by=data.received_by,
                notes=data.notes,
                created_by=actor.user_id,
                sources=allocations,
            )
            session.add(distribution)
            await self._audit(session, "create", "distribution", distribution, actor)
            return distribution

        return await self._run("create_distribution", work)

    async def create_extract(self, data: ExtractCreate, actor: Actor) -> Extract:
        """Record an extraction and draw its input grams from the source harvests.

        With ``harvest_ids`` and a total ``input_weight_grams`` the input is
        split equally across the harvests.
        """
        if data.sources:
            sources = [
                (s.harvest_id, weights.validate_grams(s.grams, "Input weight"))
                for s in data.sources
            ]
        else:
            shares = weights.split_evenly(data.input_weight_grams, len(data.harvest_ids))
            sources = [
                (harvest_id, weights.validate_grams(share, "Input weight"))
                for harvest_id, share in zip(data.harvest_ids, shares)
            ]

        async def work(session: AsyncSession) -> Extract:
            existing = await self._replay(
                session, Extract, data.association_id, data.request_id,
            )
            if existing is not None:
                return existing

            await self._association(session, data.association_id)
            [number] = await self._issue(session, ControlNumberKind.EXTRACT, data.association_id)
            allocations = await self._allocate(
                session, data.association_id, "extraction", sources,
            )
            extract = Extract(
                control_number=number,
                request_id=data.request_id,
                association_id=data.association_id,
                name=data.name,
                extract_type=data.extract_type,
                extraction_method=data.extraction_method,
                extraction_date=data.extraction_date,
                input_weight_grams=weights.quantize(sum(grams for _, grams in sources)),
                output_volume_ml=data.output_volume_ml,
                output_weight_grams=data.output_weight_grams,
                storage_location=data.storage_location,
                expiration_date=data.expiration_date,
                notes=data.notes,
                created_by=actor.user_id,
                sources=allocations,
            )
            session.add(extract)
            await self._audit(session, "create", "extract", extract, actor)
            return extract

        return await self._run("create_extract", work)

    # ── Patients ──────────────────────────────────────────────

    async def create_patient(self, data: PatientCreate, actor: Actor) -> Patient:
        async def work(session: AsyncSession) -> Patient:
            await self._association(session, data.association_id)
            patient = Patient(**data.model_dump(), created_by=actor.user_id)
            session.add(patient)
            await self._audit(session, "create", "patient", patient, actor)
            return patient

        return await self._run("create_patient", work)

    # ── Generic update / delete ───────────────────────────────

    async def update_entity(
        self, entity_type: str, entity_id: str, patch: BaseModel | dict, actor: Actor,
    ):
        """Apply a partial update and audit the fields that actually changed.

        A patch that changes nothing is a no-op and writes no audit entry.
        """
        registered = entity_type_for(entity_type)
        changes = _validate_patch(entity_type, patch)
        if entity_type == "environment" and changes.get("name"):
            scope_tag_for(changes["name"])

        async def work(session: AsyncSession):
            entity = await self._live(session, entity_type, entity_id)
            if entity_type == "harvest" and changes.get("destination_patient_id"):
                await self._patient(
                    session, changes["destination_patient_id"], entity.association_id,
                )

            before = snapshot(registered.out, entity)
            for name, value in changes.items():
                setattr(entity, name, value)
            if snapshot(registered.out, entity) == before:
                return entity
            await self._audit(session, "update", entity_type, entity, actor, before=before)
            return entity

        return await self._run(f"update_{entity_type}", work)

    async def delete_entity(self, entity_type: str, entity_id: str, actor: Actor):
        """Tombstone an entity.

        Harvests with consumed weight, environments with live plants and
        extracts already distributed are refused.  Deleting a distribution
        or extract releases its grams back to the source harvests.
        """
        entity_type_for(entity_type)

        async def work(session: AsyncSession):
            entity = await self._live(session, entity_type, entity_id)
            before = snapshot(ENTITY_TYPES[entity_type].out, entity)
            now = self.clock()

            if entity_type == "harvest":
                lock = await locks.get_harvest_delete_lock(session, entity)
                if lock:
                    raise HarvestInUse(
                        entity.control_number, entity.consumed_grams, lock.refs_for_message(),
                        hint=lock.unlock_hint,
                    )
            elif entity_type == "environment":
                lock = await locks.get_environment_delete_lock(session, entity)
                if lock:
                    raise EntityInUse(
                        f"Cannot delete {entity.name}: {lock.reason}", lock.refs_for_message(),
                        hint=lock.unlock_hint,
                    )
            elif entity_type == "extract":
                lock = await locks.get_extract_delete_lock(session, entity)
                if lock:
                    raise EntityInUse(
                        f"Cannot delete {entity.control_number}: {lock.reason}",
                        lock.refs_for_message(),
                        hint=lock.unlock_hint,
                    )

            if entity_type in ("distribution", "extract"):
                await self._release(session, entity, now)

            entity.deleted_at = now
            await self._audit(session, "delete", entity_type, entity, actor, before=before)
            return entity

        return await self._run(f"delete_{entity_type}", work)

    async def _release(self, session: AsyncSession, consumer, now: datetime) -> None:
        for allocation in consumer.sources:
            if allocation.released_at is not None:
                continue
            harvest = await weights.load_harvest(
                session, allocation.harvest_id, include_deleted=True,
            )
            weights.apply_release(harvest, allocation.kind, allocation.grams)
            allocation.released_at = now
            logger.info(
                "Released %sg of %s from %s",
                allocation.grams, harvest.control_number, consumer.id,
            )

    # ── Reads ─────────────────────────────────────────────────

    async def get_entity(self, entity_type: str, entity_id: str, include_deleted: bool = False):
        model = entity_type_for(entity_type).model

        async def work(session: AsyncSession):
            entity = await session.get(model, entity_id)
            if entity is None or (entity.deleted_at is not None and not include_deleted):
                raise EntityNotFound(entity_type, entity_id)
            return entity

        return await self._read(work)

    async def search_audit_log(self, filters: AuditFilters | None = None, **kwargs: Any) -> AuditPage:
        filters = filters or AuditFilters(**kwargs)
        if filters.entity_type:
            entity_type_for(filters.entity_type)

        async def work(session: AsyncSession) -> AuditPage:
            return await self.recorder.search(session, filters)

        return await self._read(work)

    async def entity_history(
        self,
        entity_type: str,
        entity_id: str,
        limit: int | None = None,
        cursor: str | None = None,
    ) -> AuditPage:
        """Every audit entry for one entity, newest first."""
        return await self.search_audit_log(
            AuditFilters(
                entity_type=entity_type, entity_id=entity_id, limit=limit, cursor=cursor,
            )
        )


default_ledger = Ledger()


def get_ledger() -> Ledger:
    """FastAPI dependency; tests override it with a ledger on a scratch database."""
    return default_ledger
