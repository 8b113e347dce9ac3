"""add sports and roster details

Revision ID: 7a9e3d5c1b62
Revises: 1f4c2a9b7d31
Create Date: 2026-09-16 18:40:03.117452

"""
from alembic import op
import sqlalchemy as sa



# revision identifiers, used by Alembic.
revision = '7a9e3d5c1b62'
down_revision = '1f4c2a9b7d31'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "sports",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=64), nullable=False),
        sa.Column("max_players", sa.Integer(), nullable=False),
        sa.Column("max_substitutes", sa.Integer(), server_default="0", nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name", name="uq_sports_name"),
    )

    # Batch mode recreates the tables on SQLite; plain ALTERs on Postgres.
    with op.batch_alter_table("tournaments") as batch:
        batch.add_column(sa.Column("location", sa.String(length=200), nullable=True))
        batch.add_column(sa.Column("sport_id", sa.Integer(), nullable=True))
        batch.create_index(op.f("ix_tournaments_sport_id"), ["sport_id"], unique=False)
        batch.create_foreign_key(
            "fk_tournaments_sport_id_sports",
            "sports",
            ["sport_id"],
            ["id"],
            ondelete="SET NULL",
        )

    with op.batch_alter_table("team_members") as batch:
        batch.add_column(sa.Column("name", sa.String(length=128), nullable=True))
        batch.create_unique_constraint("uq_team_member_jersey", ["team_id", "jersey_number"])

    with op.batch_alter_table("matches") as batch:
        batch.add_column(sa.Column("location", sa.String(length=200), nullable=True))


def downgrade() -> None:
    with op.batch_alter_table("matches") as batch:
        batch.drop_column("location")

    with op.batch_alter_table("team_members") as batch:
        batch.drop_constraint("uq_team_member_jersey", type_="unique")
        batch.drop_column("name")

    with op.batch_alter_table("tournaments") as batch:
        batch.drop_constraint("fk_tournaments_sport_id_sports", type_="foreignkey")
        batch.drop_index(op.f("ix_tournaments_sport_id"))
        batch.drop_column("sport_id")
        batch.drop_column("location")

    op.drop_table("sports")
