"""
Add users, bookmark collections, bookmarks, and bookmark counters tables.

Revision ID: 5c2e9a7d41b3
Revises:
Create Date: 2026-10-19 09:30:12.518204
"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "5c2e9a7d41b3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _timestamps() -> list[sa.Column]:
    return [
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
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "auth0_id",
            sa.String(length=255),
            nullable=False,
            comment="Auth0 'sub' claim - unique identifier from Auth0",
        ),
        sa.Column("email", sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_auth0_id"), "users", ["auth0_id"], unique=True)
    op.create_index(op.f("ix_users_updated_at"), "users", ["updated_at"])

    op.create_table(
        "bookmark_collections",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("edition_code", sa.String(length=32), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "slug", name="uq_bookmark_collection_user_slug"),
    )
    op.create_index(
        op.f("ix_bookmark_collections_user_id"), "bookmark_collections", ["user_id"],
    )
    op.create_index(
        op.f("ix_bookmark_collections_updated_at"), "bookmark_collections", ["updated_at"],
    )

    op.create_table(
        "bookmarks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("post_id", sa.String(length=255), nullable=False),
        sa.Column("edition_code", sa.String(length=32), nullable=True),
        sa.Column("collection_id", sa.String(length=36), nullable=True),
        sa.Column("title", sa.String(length=500), nullable=False),
        sa.Column("slug", sa.String(length=500), nullable=False),
        sa.Column("excerpt", sa.Text(), nullable=False),
        sa.Column("featured_image", postgresql.JSONB(), nullable=True),
        sa.Column("category", sa.String(length=255), nullable=True),
        sa.Column("tags", postgresql.JSONB(), nullable=True),
        sa.Column(
            "read_state",
            sa.String(length=20),
            server_default="unread",
            nullable=False,
        ),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(
            ["collection_id"], ["bookmark_collections.id"], ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "post_id", name="uq_bookmark_user_post"),
    )
    op.create_index(op.f("ix_bookmarks_user_id"), "bookmarks", ["user_id"])
    op.create_index(op.f("ix_bookmarks_collection_id"), "bookmarks", ["collection_id"])
    op.create_index(op.f("ix_bookmarks_updated_at"), "bookmarks", ["updated_at"])
    op.create_index(
        "ix_bookmarks_user_created_id", "bookmarks", ["user_id", "created_at", "id"],
    )
    op.create_index("ix_bookmarks_user_read_state", "bookmarks", ["user_id", "read_state"])
    op.create_index("ix_bookmarks_user_category", "bookmarks", ["user_id", "category"])

    op.create_table(
        "bookmark_counters",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("bucket", sa.String(length=20), nullable=False),
        sa.Column("bucket_key", sa.String(length=255), nullable=False),
        sa.Column("value", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "bucket", "bucket_key", name="uq_bookmark_counter_bucket",
        ),
    )
    op.create_index(op.f("ix_bookmark_counters_user_id"), "bookmark_counters", ["user_id"])
    op.create_index(
        op.f("ix_bookmark_counters_updated_at"), "bookmark_counters", ["updated_at"],
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f("ix_bookmark_counters_updated_at"), table_name="bookmark_counters")
    op.drop_index(op.f("ix_bookmark_counters_user_id"), table_name="bookmark_counters")
    op.drop_table("bookmark_counters")

    op.drop_index("ix_bookmarks_user_category", table_name="bookmarks")
    op.drop_index("ix_bookmarks_user_read_state", table_name="bookmarks")
    op.drop_index("ix_bookmarks_user_created_id", table_name="bookmarks")
    op.drop_index(op.f("ix_bookmarks_updated_at"), table_name="bookmarks")
    op.drop_index(op.f("ix_bookmarks_collection_id"), table_name="bookmarks")
    op.drop_index(op.f("ix_bookmarks_user_id"), table_name="bookmarks")
    op.drop_table("bookmarks")

    op.drop_index(
        op.f("ix_bookmark_collections_updated_at"), table_name="bookmark_collections",
    )
    op.drop_index(op.f("ix_bookmark_collections_user_id"), table_name="bookmark_collections")
    op.drop_table("bookmark_collections")

    op.drop_index(op.f("ix_users_updated_at"), table_name="users")
    op.drop_index(op.f("ix_users_auth0_id"), table_name="users")
    op.drop_table("users")
