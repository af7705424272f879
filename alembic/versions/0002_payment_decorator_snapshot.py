"""payments.decorator_email snapshot

Revision ID: 0002_payment_decorator_snapshot
Revises: 0001_initial
Create Date: 2026-10-18

"""

from alembic import op
import sqlalchemy as sa

revision = "0002_payment_decorator_snapshot"
down_revision = "0001_initial"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column("payments", sa.Column("decorator_email", sa.String(length=320), nullable=True))
    op.create_index("ix_payments_decorator_email", "payments", ["decorator_email"], unique=False)
    # existing payments take the booking's current decorator
    op.execute(
        "UPDATE payments SET decorator_email = "
        "(SELECT bookings.decorator_email FROM bookings WHERE bookings.id = payments.booking_id)"
    )


def downgrade() -> None:
    op.drop_index("ix_payments_decorator_email", table_name="payments")
    op.drop_column("payments", "decorator_email")
