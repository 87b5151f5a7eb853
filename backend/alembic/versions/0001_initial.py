from alembic import op
import sqlalchemy as sa

revision = "0001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "player",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.Column("highest_rating", sa.Integer(), nullable=True),
        sa.Column("lowest_rating", sa.Integer(), nullable=True),
    )
    op.create_table(
        "registration",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column(
            "player_id",
            sa.String(),
            sa.ForeignKey("player.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("league_id", sa.String(), nullable=False),
        sa.Column("season", sa.String(), nullable=False),
        sa.Column("level", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column(
            "registered_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("stats", sa.JSON(), nullable=True),
        sa.Column("match_history", sa.JSON(), nullable=True),
        sa.Column("rating", sa.Integer(), nullable=True),
        sa.UniqueConstraint(
            "player_id",
            "league_id",
            "season",
            name="uq_registration_player_league_season",
        ),
    )
    op.create_index(
        "ix_registration_league_season", "registration", ["league_id", "season"]
    )
    op.create_table(
        "league_round",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("league_id", sa.String(), nullable=False),
        sa.Column("season", sa.String(), nullable=False),
        sa.Column("number", sa.Integer(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "league_id",
            "season",
            "number",
            name="uq_league_round_league_season_number",
        ),
    )
    op.create_table(
        "match",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("league_id", sa.String(), nullable=False),
        sa.Column("season", sa.String(), nullable=False),
        sa.Column("round", sa.Integer(), nullable=False),
        sa.Column("player1_id", sa.String(), sa.ForeignKey("player.id"), nullable=False),
        sa.Column("player2_id", sa.String(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("is_bye", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("winner_id", sa.String(), sa.ForeignKey("player.id"), nullable=True),
        sa.Column("score", sa.JSON(), nullable=True),
        sa.Column("played_at", sa.DateTime(), nullable=True),
        sa.Column("elo_changes", sa.JSON(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_match_league_season_round", "match", ["league_id", "season", "round"]
    )
    op.create_index("ix_match_status", "match", ["status"])


def downgrade():
    op.drop_index("ix_match_status", table_name="match")
    op.drop_index("ix_match_league_season_round", table_name="match")
    op.drop_table("match")
    op.drop_table("league_round")
    op.drop_index("ix_registration_league_season", table_name="registration")
    op.drop_table("registration")
    op.drop_table("player")
