"""baseline inventory schema

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '0001_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    # İlk revizyon: tüm tablolar model metadata'sından (tutarlar baştan kuruş/int)
    from inventory_api.core.db import Base
    from inventory_api import models  # noqa: F401

    Base.metadata.create_all(bind=op.get_bind())


def downgrade():
    from inventory_api.core.db import Base
    from inventory_api import models  # noqa: F401

    Base.metadata.drop_all(bind=op.get_bind())
