"""Aggregate model imports for Alembic auto-detection."""

# Scopes
from growledger.models.scope import Association, Environment  # noqa: F401
from growledger.models.sequence_counter import SequenceCounter  # noqa: F401

# Regulated entities
from growledger.models.plant import Plant  # noqa: F401
from growledger.models.harvest import Harvest, HarvestPurpose, HarvestStatus  # noqa: F401
from growledger.models.patient import Patient  # noqa: F401
from growledger.models.distribution import Distribution  # noqa: F401
from growledger.models.extract import Extract  # noqa: F401
from growledger.models.allocation import HarvestAllocation  # noqa: F401

# Audit trail
from growledger.models.audit_log import AuditLogEntry  # noqa: F401
