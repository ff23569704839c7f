"""seed subscription plans

Revision ID: 8e52f0b6c7a1
Revises: 3a1c9e7d2b40
Create Date: 2026-10-12 09:41:07.112358

"""
from datetime import datetime,timezone
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from uuid6 import uuid7

now_ts = datetime.now(timezone.utc)

# revision identifiers, used by Alembic.
revision: str = '8e52f0b6c7a1'
down_revision: Union[str, Sequence[str], None] = '3a1c9e7d2b40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# rupees per litre per day
RATES = {"cow": 70, "buffalo": 80}
VOLUMES = {"1L": 1, "2L": 2, "3L": 3}
DURATIONS = (30, 15, 7)

FEATURES = {
    "cow": ["Pure cow milk", "Farm fresh quality", "Morning delivery"],
    "buffalo": ["Pure buffalo milk", "Rich and creamy", "Morning delivery"],
}

plans_table = sa.table(
    "subscriptionplan",
    sa.column("public_id", sa.Uuid()),
    sa.column("name", sa.String),
    sa.column("milk_type", sa.String),
    sa.column("volume", sa.String),
    sa.column("duration_days", sa.Integer),
    sa.column("price", sa.BigInteger),
    sa.column("daily_price", sa.BigInteger),
    sa.column("discount", sa.Integer),
    sa.column("original_price", sa.BigInteger),
    sa.column("features", sa.JSON),
    sa.column("description", sa.Text),
    sa.column("popularity", sa.Integer),
    sa.column("is_active", sa.Boolean),
    sa.column("created_at", sa.DateTime(timezone=True)),
    sa.column("updated_at", sa.DateTime(timezone=True)),
)


def _plan_name(milk_type, volume, days):
    return f"{days} Days {milk_type.title()} Milk {volume} Daily"


def _rows():
    rows = []
    for milk_type, rate in RATES.items():
        adjective = "Fresh" if milk_type == "cow" else "Rich"
        for volume, litres in VOLUMES.items():
            daily = rate * litres
            for days in DURATIONS:
                rows.append({
                    "public_id": uuid7(),
                    "name": _plan_name(milk_type, volume, days),
                    "milk_type": milk_type,
                    "volume": volume,
                    "duration_days": days,
                    "price": daily * days,
                    "daily_price": daily,
                    "discount": 0,
                    "original_price": None,
                    "features": FEATURES[milk_type] + [f"{volume} daily delivery"],
                    "description": f"{adjective} {milk_type} milk delivered daily for {days} days",
                    "popularity": 0,
                    "is_active": True,
                    "created_at": now_ts,
                    "updated_at": now_ts,
                })
    return rows


def upgrade() -> None:
    """Upgrade schema."""
    op.bulk_insert(plans_table, _rows())


def downgrade() -> None:
    """Downgrade schema."""
    names = [_plan_name(m, v, d) for m in RATES for v in VOLUMES for d in DURATIONS]
    op.execute(plans_table.delete().where(plans_table.c.name.in_(names)))
