"""initial tables: blocks, rooms, admins, residents

Revision ID: 0001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None

BLOCKS = ('block1', 'block2', 'block3', 'block4', 'block5', 'block6', 'block7', 'block8')
BED_TYPES = ('1 bedded', '2 bedded', '3 bedded', '4 bedded')

def upgrade():
    # enums
    hostel_block = sa.Enum(*BLOCKS, name='hostel_block')
    bed_type = sa.Enum(*BED_TYPES, name='bed_type')

    bind = op.get_bind()
    dialect = bind.dialect.name

    if dialect != "sqlite":
        hostel_block.create(bind, checkfirst=True)
        bed_type.create(bind, checkfirst=True)

    op.create_table('blocks',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', hostel_block, nullable=False),
        sa.Column('total_rooms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('total_rooms >= 0', name='ck_blocks_total_rooms_non_negative'),
    )
    op.create_index('ix_blocks_name', 'blocks', ['name'], unique=True)

    op.create_table('rooms',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('block_id', sa.Integer(), sa.ForeignKey('blocks.id', ondelete='CASCADE'), nullable=False),
        sa.Column('number', sa.Integer(), nullable=False),
        sa.Column('bed_type', bed_type, nullable=False),
        sa.Column('available_beds', sa.Integer(), nullable=False),
        sa.UniqueConstraint('block_id', 'number', name='uq_room_block_number'),
        sa.CheckConstraint('available_beds >= 0', name='ck_rooms_available_beds_non_negative'),
    )
    op.create_index('ix_room_block_bed_type', 'rooms', ['block_id', 'bed_type'])

    op.create_table('admins',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_admins_username', 'admins', ['username'], unique=True)

    op.create_table('residents',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=True),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('block', hostel_block, nullable=True),
        sa.Column('room_number', sa.Integer(), nullable=True),
        sa.Column('bed_type', bed_type, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_residents_email', 'residents', ['email'], unique=True)
    op.create_index('ix_residents_phone', 'residents', ['phone'], unique=True)
    op.create_index('ix_residents_block', 'residents', ['block'])
    op.create_index('ix_resident_block_room', 'residents', ['block', 'room_number'])

def downgrade():
    op.drop_table('residents')
    op.drop_table('admins')
    op.drop_table('rooms')
    op.drop_table('blocks')

    bind = op.get_bind()
    if bind.dialect.name != "sqlite":
        sa.Enum(name='bed_type').drop(bind, checkfirst=True)
        sa.Enum(name='hostel_block').drop(bind, checkfirst=True)
