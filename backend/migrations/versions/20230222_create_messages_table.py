"""create messages table

Revision ID: 20230222_create_messages_table
Revises:
Create Date: 2023-02-22 16:29:36

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20230222_create_messages_table'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # uuid is unique but deliberately not a primary key
    op.create_table(
        'messages',
        sa.Column('uuid', sa.CHAR(length=36), nullable=False, unique=True),
        sa.Column('author', sa.String(length=64), nullable=False),
        sa.Column('message', sa.String(length=1024), nullable=True),
        sa.Column('likes', sa.Integer(), nullable=False),
        sa.Column('has_image', sa.Boolean(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('messages')
