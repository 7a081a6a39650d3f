"""Initial ledger schema — scopes, counters, regulated entities, audit log.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-17

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def upgrade() -> None:
    # ── Scopes ───────────────────────────────────────────────

    op.create_table(
        "associations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime()),
    )

    op.create_table(
        "environments",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("association_id", sa.String(36), sa.ForeignKey("associations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(30)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
        sa.Column("deleted_at", sa.DateTime()),
    )
    op.create_index("ix_environments_association_id", "environments", ["association_id"])

    # ── Sequence counters ────────────────────────────────────

    op.create_table(
        "sequence_counters",
        sa.Column("scope_id", sa.String(36), primary_key=True),
        sa.Column("counter_name", sa.String(50), primary_key=True),
        sa.Column("value", sa.BigInteger(), nullable=False),
        sa.Column("updated_at", sa.DateTime()),
        sa.CheckConstraint("value >= 0", name="ck_sequence_counters_value_nonneg"),
    )

    # ── Plants / patients ────────────────────────────────────

    op.create_table(
        "plants",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("control_number", sa.String(50), nullable=False),
        sa.Column("environment_id", sa.String(36), sa.ForeignKey("environments.id"), nullable=False),
        sa.Column("association_id", sa.String(36), sa.ForeignKey("associations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("strain", sa.String(255), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("current_stage", sa.String(30)),
        sa.Column("source_type", sa.String(30)),
        sa.Column("mother_plant_id", sa.String(36), sa.ForeignKey("plants.id")),
        sa.Column("parent_control_number", sa.String(50)),
        sa.Column("genetic_lineage", sa.String(255)),
        sa.Column("is_mother_plant", sa.Boolean()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
        sa.Column("deleted_at", sa.DateTime()),
        sa.UniqueConstraint("environment_id", "control_number", name="uq_plants_environment_number"),
    )
    op.create_index("ix_plants_control_number", "plants", ["control_number"])
    op.create_index("ix_plants_environment_id", "plants", ["environment_id"])
    op.create_index("ix_plants_association_id", "plants", ["association_id"])
    op.create_index("ix_plants_created_at", "plants", ["created_at"])

    op.create_table(
        "patients",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("association_id", sa.String(36), sa.ForeignKey("associations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("document_type", sa.String(20), nullable=False),
        sa.Column("document_number", sa.String(50), nullable=False),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(30)),
        sa.Column("join_date", sa.Date()),
        sa.Column("status", sa.String(20)),
        sa.Column("medical_condition", sa.Text()),
        sa.Column("prescribing_doctor", sa.String(255)),
        sa.Column("prescription_expiration_date", sa.Date()),
        sa.Column("allowance_flower_grams", sa.Float()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
        sa.Column("deleted_at", sa.DateTime()),
    )
    op.create_index("ix_patients_association_id", "patients", ["association_id"])
    op.create_index("ix_patients_name", "patients", ["name"])
    op.create_index("ix_patients_status", "patients", ["status"])

    # ── Harvests ─────────────────────────────────────────────

    op.create_table(
        "harvests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("control_number", sa.String(50), nullable=False),
        sa.Column("plant_id", sa.String(36), sa.ForeignKey("plants.id"), nullable=False),
        sa.Column("environment_id", sa.String(36), sa.ForeignKey("environments.id"), nullable=False),
        sa.Column("association_id", sa.String(36), sa.ForeignKey("associations.id"), nullable=False),
        sa.Column("harvest_date", sa.Date(), nullable=False),
        sa.Column("wet_weight_grams", sa.Float(), nullable=False),
        sa.Column("dry_weight_grams", sa.Float()),
        sa.Column("final_weight_grams", sa.Float()),
        sa.Column("trim_weight_grams", sa.Float()),
        sa.Column("distributed_grams", sa.Float(), nullable=False, server_default="0"),
        sa.Column("extracted_grams", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(30), nullable=False, server_default="fresh"),
        sa.Column("purpose", sa.String(30), nullable=False),
        sa.Column("destination_patient_id", sa.String(36), sa.ForeignKey("patients.id")),
        sa.Column("quality_grade", sa.String(1)),
        sa.Column("storage_location", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
        sa.Column("deleted_at", sa.DateTime()),
        sa.CheckConstraint("wet_weight_grams > 0", name="ck_harvests_wet_positive"),
        sa.CheckConstraint("distributed_grams >= 0", name="ck_harvests_distributed_nonneg"),
        sa.CheckConstraint("extracted_grams >= 0", name="ck_harvests_extracted_nonneg"),
        sa.UniqueConstraint("environment_id", "control_number", name="uq_harvests_environment_number"),
    )
    op.create_index("ix_harvests_control_number", "harvests", ["control_number"])
    op.create_index("ix_harvests_plant_id", "harvests", ["plant_id"])
    op.create_index("ix_harvests_environment_id", "harvests", ["environment_id"])
    op.create_index("ix_harvests_association_id", "harvests", ["association_id"])
    op.create_index("ix_harvests_harvest_date", "harvests", ["harvest_date"])
    op.create_index("ix_harvests_status", "harvests", ["status"])
    op.create_index("ix_harvests_created_at", "harvests", ["created_at"])

    # ── Consumers ────────────────────────────────────────────

    op.create_table(
        "extracts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("control_number", sa.String(50), nullable=False),
        sa.Column("request_id", sa.String(64)),
        sa.Column("association_id", sa.String(36), sa.ForeignKey("associations.id"), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("extract_type", sa.String(30), nullable=False),
        sa.Column("extraction_method", sa.String(30), nullable=False),
        sa.Column("extraction_date", sa.Date(), nullable=False),
        sa.Column("input_weight_grams", sa.Float(), nullable=False),
        sa.Column("output_volume_ml", sa.Float()),
        sa.Column("output_weight_grams", sa.Float()),
        sa.Column("storage_location", sa.String(255)),
        sa.Column("expiration_date", sa.Date()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
        sa.Column("deleted_at", sa.DateTime()),
        sa.UniqueConstraint("association_id", "control_number", name="uq_extracts_association_number"),
        sa.UniqueConstraint("association_id", "request_id", name="uq_extracts_association_request"),
    )
    op.create_index("ix_extracts_control_number", "extracts", ["control_number"])
    op.create_index("ix_extracts_association_id", "extracts", ["association_id"])
    op.create_index("ix_extracts_extraction_date", "extracts", ["extraction_date"])
    op.create_index("ix_extracts_created_at", "extracts", ["created_at"])

    op.create_table(
        "distributions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("distribution_number", sa.String(50), nullable=False),
        sa.Column("request_id", sa.String(64)),
        sa.Column("association_id", sa.String(36), sa.ForeignKey("associations.id"), nullable=False),
        sa.Column("patient_id", sa.String(36), sa.ForeignKey("patients.id"), nullable=False),
        sa.Column("patient_name", sa.String(255), nullable=False),
        sa.Column("product_type", sa.String(30), nullable=False),
        sa.Column("product_description", sa.Text()),
        sa.Column("extract_id", sa.String(36), sa.ForeignKey("extracts.id")),
        sa.Column("extract_control_number", sa.String(50)),
        sa.Column("quantity_grams", sa.Float()),
        sa.Column("quantity_ml", sa.Float()),
        sa.Column("quantity_units", sa.Integer()),
        sa.Column("distribution_date", sa.Date(), nullable=False),
        sa.Column("received_by", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
        sa.Column("deleted_at", sa.DateTime()),
        sa.UniqueConstraint(
            "association_id", "distribution_number", name="uq_distributions_association_number",
        ),
        sa.UniqueConstraint("association_id", "request_id", name="uq_distributions_association_request"),
    )
    op.create_index("ix_distributions_distribution_number", "distributions", ["distribution_number"])
    op.create_index("ix_distributions_association_id", "distributions", ["association_id"])
    op.create_index("ix_distributions_patient_id", "distributions", ["patient_id"])
    op.create_index("ix_distributions_extract_id", "distributions", ["extract_id"])
    op.create_index("ix_distributions_distribution_date", "distributions", ["distribution_date"])
    op.create_index("ix_distributions_created_at", "distributions", ["created_at"])

    op.create_table(
        "harvest_allocations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("harvest_id", sa.String(36), sa.ForeignKey("harvests.id"), nullable=False),
        sa.Column("harvest_control_number", sa.String(50), nullable=False),
        sa.Column("kind", sa.String(20), nullable=False),
        sa.Column("distribution_id", sa.String(36), sa.ForeignKey("distributions.id")),
        sa.Column("extract_id", sa.String(36), sa.ForeignKey("extracts.id")),
        sa.Column("grams", sa.Float(), nullable=False),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("released_at", sa.DateTime()),
        sa.CheckConstraint("grams > 0", name="ck_harvest_allocations_grams_positive"),
    )
    op.create_index("ix_harvest_allocations_harvest_id", "harvest_allocations", ["harvest_id"])
    op.create_index("ix_harvest_allocations_distribution_id", "harvest_allocations", ["distribution_id"])
    op.create_index("ix_harvest_allocations_extract_id", "harvest_allocations", ["extract_id"])

    # ── Audit log (append-only) ──────────────────────────────

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("actor_id", sa.String(36), nullable=False),
        sa.Column("actor_email", sa.String(255)),
        sa.Column("action", sa.String(20), nullable=False),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("entity_display_name", sa.String(255)),
        sa.Column("changed_fields", sa.JSON()),
        sa.Column("previous_value", sa.JSON()),
        sa.Column("new_value", sa.JSON()),
        sa.Column("notes", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_audit_log_actor_id", "audit_log", ["actor_id"])
    op.create_index("ix_audit_log_action", "audit_log", ["action"])
    op.create_index("ix_audit_log_entity_type", "audit_log", ["entity_type"])
    op.create_index("ix_audit_log_entity_id", "audit_log", ["entity_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("harvest_allocations")
    op.drop_table("distributions")
    op.drop_table("extracts")
    op.drop_table("harvests")
    op.drop_table("patients")
    op.drop_table("plants")
    op.drop_table("sequence_counters")
    op.drop_table("environments")
    op.drop_table("associations")
