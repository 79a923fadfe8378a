"""Reading lists and reading sessions

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "0002"
down_revision = "0001"
branch_labels = None
depends_on = None


def upgrade():
    # Reading lists
    op.create_table(
        "reading_lists",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_public", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("reading_lists", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_reading_lists_user_id"), ["user_id"], unique=False)

    op.create_table(
        "reading_list_books",
        sa.Column("list_id", sa.Integer(), nullable=False),
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("added_at", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["list_id"], ["reading_lists.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("list_id", "book_id"),
    )
    with op.batch_alter_table("reading_list_books", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_reading_list_books_book_id"), ["book_id"], unique=False)

    # Timed reading sessions
    op.create_table(
        "reading_sessions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("book_id", sa.Integer(), nullable=False),
        sa.Column("started_at", sa.DateTime(), nullable=False),
        sa.Column("ended_at", sa.DateTime(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("pages_read", sa.Integer(), nullable=False),
        sa.CheckConstraint("pages_read >= 0", name="ck_reading_sessions_pages_read"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["book_id"], ["books.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    with op.batch_alter_table("reading_sessions", schema=None) as batch_op:
        batch_op.create_index(batch_op.f("ix_reading_sessions_started_at"), ["started_at"], unique=False)
        batch_op.create_index("ix_reading_sessions_user_book", ["user_id", "book_id"], unique=False)


def downgrade():
    with op.batch_alter_table("reading_sessions", schema=None) as batch_op:
        batch_op.drop_index("ix_reading_sessions_user_book")
        batch_op.drop_index(batch_op.f("ix_reading_sessions_started_at"))
    op.drop_table("reading_sessions")
    with op.batch_alter_table("reading_list_books", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_reading_list_books_book_id"))
    op.drop_table("reading_list_books")
    with op.batch_alter_table("reading_lists", schema=None) as batch_op:
        batch_op.drop_index(batch_op.f("ix_reading_lists_user_id"))
    op.drop_table("reading_lists")
