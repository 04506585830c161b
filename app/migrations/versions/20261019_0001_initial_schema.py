"""Initial schema for TotalsRadar.

Revision ID: 0001
Revises:
Create Date: 2026-10-19

This migration creates all the core tables for the TotalsRadar system:
- Teams and Games (the schedule the prewarm pass reads)
- MatchupGames: completed head-to-head games per canonical pair
- MatchupStats: cached segment statistics
- JobRuns for task audit logging

Pairs are stored in canonical (low, high) order. The unique constraint on
matchup_games makes re-hydrating a pair a no-op for games already present.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Teams table
    op.create_table(
        "teams",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("sport_id", sa.String(length=10), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("abbrev", sa.String(length=10), nullable=True),
        sa.Column("franchise_id", sa.String(length=64), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_teams_sport", "teams", ["sport_id"])

    # Games table (schedule)
    op.create_table(
        "games",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("sport_id", sa.String(length=10), nullable=False),
        sa.Column("start_time_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("home_team_id", sa.String(length=64), nullable=False),
        sa.Column("away_team_id", sa.String(length=64), nullable=False),
        sa.Column("home_franchise_id", sa.String(length=64), nullable=True),
        sa.Column("away_franchise_id", sa.String(length=64), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=True, default="scheduled"),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["home_team_id"], ["teams.id"]),
        sa.ForeignKeyConstraint(["away_team_id"], ["teams.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_games_sport_start", "games", ["sport_id", "start_time_utc"])

    # Matchup games - completed head-to-head history
    op.create_table(
        "matchup_games",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sport_id", sa.String(length=10), nullable=False),
        sa.Column("team_low_id", sa.String(length=64), nullable=False),
        sa.Column("team_high_id", sa.String(length=64), nullable=False),
        sa.Column("franchise_low_id", sa.String(length=64), nullable=True),
        sa.Column("franchise_high_id", sa.String(length=64), nullable=True),
        sa.Column("game_id", sa.String(length=64), nullable=False),
        sa.Column("played_at_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("total", sa.Numeric(precision=8, scale=2), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "sport_id",
            "team_low_id",
            "team_high_id",
            "game_id",
            name="uq_matchup_games_pair_game",
        ),
    )
    op.create_index(
        "idx_matchup_games_teams",
        "matchup_games",
        ["sport_id", "team_low_id", "team_high_id"],
    )
    op.create_index(
        "idx_matchup_games_franchises",
        "matchup_games",
        ["sport_id", "franchise_low_id", "franchise_high_id"],
    )

    # Matchup stats - segment cache, derived from matchup_games
    op.create_table(
        "matchup_stats",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("sport_id", sa.String(length=10), nullable=False),
        sa.Column("team_low_id", sa.String(length=64), nullable=False),
        sa.Column("team_high_id", sa.String(length=64), nullable=False),
        sa.Column("key_kind", sa.String(length=10), nullable=False, server_default="team"),
        sa.Column("segment_key", sa.String(length=30), nullable=False),
        sa.Column("n_games", sa.Integer(), nullable=False, default=0),
        sa.Column("p05", sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column("p95", sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column("median", sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column("min_total", sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column("max_total", sa.Numeric(precision=8, scale=2), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "sport_id",
            "key_kind",
            "team_low_id",
            "team_high_id",
            "segment_key",
            name="uq_matchup_stats_pair_segment",
        ),
    )

    # Job runs table
    op.create_table(
        "job_runs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("job_name", sa.String(length=100), nullable=False),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("finished_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "status",
            sa.String(length=20),
            nullable=False,
            comment="'running', 'success', 'partial', 'failed'",
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("details", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_job_runs_name_time", "job_runs", ["job_name", "started_at"])


def downgrade() -> None:
    op.drop_index("idx_job_runs_name_time", table_name="job_runs")
    op.drop_table("job_runs")
    op.drop_table("matchup_stats")
    op.drop_index("idx_matchup_games_franchises", table_name="matchup_games")
    op.drop_index("idx_matchup_games_teams", table_name="matchup_games")
    op.drop_table("matchup_games")
    op.drop_index("idx_games_sport_start", table_name="games")
    op.drop_table("games")
    op.drop_index("idx_teams_sport", table_name="teams")
    op.drop_table("teams")
