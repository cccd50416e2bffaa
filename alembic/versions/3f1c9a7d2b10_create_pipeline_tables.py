"""create pipeline tables

Revision ID: 3f1c9a7d2b10
Revises:
Create Date: 2026-10-19 09:12:44.518203

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    """Upgrade schema."""
    # Catalog
    op.create_table(
        "components",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("multiplier", sa.Float(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "key", name="uq_component_key"),
        sa.CheckConstraint("multiplier > 0", name="ck_component_multiplier_positive"),
    )
    op.create_index("ix_components_org_id", "components", ["org_id"])

    op.create_table(
        "rules",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("component_id", sa.Uuid(), nullable=False),
        sa.Column("match_type", sa.String(), nullable=False),
        sa.Column("pattern", sa.String(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["component_id"], ["components.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rules_component_id", "rules", ["component_id"])

    op.create_table(
        "severities",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("key", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("base_points", sa.Integer(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "key", name="uq_severity_key"),
        sa.CheckConstraint("base_points >= 0", name="ck_severity_base_points_non_negative"),
    )
    op.create_index("ix_severities_org_id", "severities", ["org_id"])

    op.create_table(
        "rule_sets",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("model_name", sa.String(), nullable=True),
        sa.Column("active_from", sa.DateTime(timezone=True), nullable=False),
        sa.Column("active_to", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_rule_sets_org_id", "rule_sets", ["org_id"])

    op.create_table(
        "prompt_templates",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("rule_set_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("template", sa.Text(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["rule_set_id"], ["rule_sets.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_prompt_templates_org_id", "prompt_templates", ["org_id"])
    op.create_index(
        "ix_prompt_templates_rule_set_id", "prompt_templates", ["rule_set_id"]
    )

    # Source data
    op.create_table(
        "repositories",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("github_repo_id", sa.BigInteger(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("default_branch", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "github_repo_id", name="uq_repository_identity"),
    )
    op.create_index("ix_repositories_org_id", "repositories", ["org_id"])

    op.create_table(
        "issues",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("repo_id", sa.Uuid(), nullable=False),
        sa.Column("github_issue_id", sa.BigInteger(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("labels", JSONType, nullable=False),
        sa.Column("url", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["repo_id"], ["repositories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "github_issue_id", name="uq_issue_identity"),
    )
    op.create_index("ix_issues_org_id", "issues", ["org_id"])
    op.create_index("ix_issues_repo_id", "issues", ["repo_id"])
    op.create_index("ix_issues_number", "issues", ["number"])

    op.create_table(
        "changes",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("repo_id", sa.Uuid(), nullable=True),
        sa.Column("github_pr_id", sa.BigInteger(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("url", sa.String(), nullable=True),
        sa.Column("author_github_id", sa.BigInteger(), nullable=True),
        sa.Column("author_login", sa.String(), nullable=True),
        sa.Column("is_merged", sa.Boolean(), nullable=False),
        sa.Column("merged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("head_sha", sa.String(), nullable=True),
        sa.Column("base_sha", sa.String(), nullable=True),
        sa.Column("additions", sa.Integer(), nullable=False),
        sa.Column("deletions", sa.Integer(), nullable=False),
        sa.Column("changed_files_count", sa.Integer(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["repo_id"], ["repositories.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("org_id", "github_pr_id", name="uq_change_identity"),
    )
    op.create_index("ix_changes_org_id", "changes", ["org_id"])
    op.create_index("ix_changes_repo_id", "changes", ["repo_id"])
    op.create_index("ix_changes_author_github_id", "changes", ["author_github_id"])

    op.create_table(
        "changed_files",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("change_id", sa.Uuid(), nullable=False),
        sa.Column("path", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=True),
        sa.Column("additions", sa.Integer(), nullable=True),
        sa.Column("deletions", sa.Integer(), nullable=True),
        sa.Column("changes", sa.Integer(), nullable=True),
        sa.Column("patch", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["change_id"], ["changes.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_changed_files_change_id", "changed_files", ["change_id"])

    op.create_table(
        "issue_links",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("change_id", sa.Uuid(), nullable=False),
        sa.Column("issue_id", sa.Uuid(), nullable=False),
        sa.Column("link_type", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(["change_id"], ["changes.id"]),
        sa.ForeignKeyConstraint(["issue_id"], ["issues.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("change_id", "issue_id", name="uq_issue_link"),
    )
    op.create_index("ix_issue_links_org_id", "issue_links", ["org_id"])
    op.create_index("ix_issue_links_change_id", "issue_links", ["change_id"])
    op.create_index("ix_issue_links_issue_id", "issue_links", ["issue_id"])

    op.create_table(
        "change_components",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("change_id", sa.Uuid(), nullable=False),
        sa.Column("component_id", sa.Uuid(), nullable=False),
        sa.Column("lines_changed", sa.Integer(), nullable=False),
        sa.Column("is_primary", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["change_id"], ["changes.id"]),
        sa.ForeignKeyConstraint(["component_id"], ["components.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("change_id", "component_id", name="uq_change_component"),
    )
    op.create_index(
        "ix_change_components_change_id", "change_components", ["change_id"]
    )
    op.create_index(
        "ix_change_components_component_id", "change_components", ["component_id"]
    )

    # Evaluation
    op.create_table(
        "evaluation_batches",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("rule_set_id", sa.Uuid(), nullable=True),
        sa.Column("run_type", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("items_processed", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["rule_set_id"], ["rule_sets.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_evaluation_batches_id", "evaluation_batches", ["id"])
    op.create_index("ix_evaluation_batches_org_id", "evaluation_batches", ["org_id"])
    op.create_index(
        "ix_evaluation_batches_rule_set_id", "evaluation_batches", ["rule_set_id"]
    )

    op.create_table(
        "evaluations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("change_id", sa.Uuid(), nullable=False),
        sa.Column("rule_set_id", sa.Uuid(), nullable=False),
        sa.Column("batch_id", sa.Uuid(), nullable=True),
        sa.Column("model_name", sa.String(), nullable=True),
        sa.Column("evaluation_source", sa.String(), nullable=False),
        sa.Column("primary_component_id", sa.Uuid(), nullable=True),
        sa.Column("severity_id", sa.Uuid(), nullable=True),
        sa.Column("judged_component_key", sa.String(), nullable=False),
        sa.Column("judged_severity_key", sa.String(), nullable=False),
        sa.Column("base_points", sa.Integer(), nullable=False),
        sa.Column("multiplier", sa.Float(), nullable=False),
        sa.Column("final_score", sa.Float(), nullable=False),
        sa.Column("eligibility_issue", sa.Boolean(), nullable=False),
        sa.Column("eligibility_fix_implementation", sa.Boolean(), nullable=False),
        sa.Column("eligibility_pr_linked", sa.Boolean(), nullable=False),
        sa.Column("eligibility_tests", sa.Boolean(), nullable=False),
        sa.Column("is_eligible", sa.Boolean(), nullable=False),
        sa.Column("justification_component", sa.Text(), nullable=True),
        sa.Column("justification_severity", sa.Text(), nullable=True),
        sa.Column("impact_summary", sa.Text(), nullable=True),
        sa.Column("eligibility_notes", sa.Text(), nullable=True),
        sa.Column("review_notes", sa.Text(), nullable=True),
        sa.Column("raw_response", JSONType, nullable=False),
        sa.Column("folded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["change_id"], ["changes.id"]),
        sa.ForeignKeyConstraint(["rule_set_id"], ["rule_sets.id"]),
        sa.ForeignKeyConstraint(["batch_id"], ["evaluation_batches.id"]),
        sa.ForeignKeyConstraint(["primary_component_id"], ["components.id"]),
        sa.ForeignKeyConstraint(["severity_id"], ["severities.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "change_id", "rule_set_id", name="uq_evaluation_change_rule_set"
        ),
    )
    op.create_index("ix_evaluations_org_id", "evaluations", ["org_id"])
    op.create_index("ix_evaluations_change_id", "evaluations", ["change_id"])
    op.create_index("ix_evaluations_rule_set_id", "evaluations", ["rule_set_id"])
    op.create_index("ix_evaluations_batch_id", "evaluations", ["batch_id"])

    op.create_table(
        "developer_daily_stats",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("org_id", sa.Uuid(), nullable=False),
        sa.Column("github_user_id", sa.BigInteger(), nullable=False),
        sa.Column("stat_date", sa.Date(), nullable=False),
        sa.Column("total_score", sa.Float(), nullable=False),
        sa.Column("pr_count", sa.Integer(), nullable=False),
        sa.Column("p0_count", sa.Integer(), nullable=False),
        sa.Column("p1_count", sa.Integer(), nullable=False),
        sa.Column("p2_count", sa.Integer(), nullable=False),
        sa.Column("p3_count", sa.Integer(), nullable=False),
        sa.Column("component_scores", JSONType, nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "org_id", "github_user_id", "stat_date", name="uq_developer_daily_stat"
        ),
    )
    op.create_index(
        "ix_developer_daily_stats_org_id", "developer_daily_stats", ["org_id"]
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table("developer_daily_stats")
    op.drop_table("evaluations")
    op.drop_table("evaluation_batches")
    op.drop_table("change_components")
    op.drop_table("issue_links")
    op.drop_table("changed_files")
    op.drop_table("changes")
    op.drop_table("issues")
    op.drop_table("repositories")
    op.drop_table("prompt_templates")
    op.drop_table("rule_sets")
    op.drop_table("severities")
    op.drop_table("rules")
    op.drop_table("components")
