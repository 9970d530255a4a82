"""
Create users, departments, grievances and their child tables

Revision ID: 20261018_001_create_grievance_tables
Revises:
Create Date: 2026-10-18 09:00:00.000000
"""

from alembic import op

revision = '20261018_001_create_grievance_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.execute(r'''
    CREATE TABLE IF NOT EXISTS users (
      id VARCHAR(36) PRIMARY KEY,
      name VARCHAR NOT NULL,
      email VARCHAR NOT NULL UNIQUE,
      phone_number VARCHAR,
      student_id VARCHAR,
      department VARCHAR,
      password_hash VARCHAR,
      role VARCHAR NOT NULL DEFAULT 'user',
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ
    )
    ''')
    op.execute("CREATE INDEX IF NOT EXISTS ix_users_email ON users (email)")

    op.execute(r'''
    CREATE TABLE IF NOT EXISTS departments (
      id VARCHAR(36) PRIMARY KEY,
      name VARCHAR NOT NULL,
      code VARCHAR(32) NOT NULL UNIQUE,
      email VARCHAR,
      phone_number VARCHAR,
      password_hash VARCHAR,
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    ''')
    op.execute("CREATE INDEX IF NOT EXISTS ix_departments_code ON departments (code)")

    op.execute(r'''
    CREATE TABLE IF NOT EXISTS grievances (
      id VARCHAR(36) PRIMARY KEY,
      title VARCHAR(100) NOT NULL,
      description TEXT NOT NULL,
      category VARCHAR(32) NOT NULL,
      status VARCHAR(32) NOT NULL DEFAULT 'Pending',
      priority VARCHAR(16) NOT NULL DEFAULT 'Medium',
      submitted_by VARCHAR(36) NOT NULL REFERENCES users(id),
      assigned_to VARCHAR(36) REFERENCES users(id),
      department VARCHAR(36) REFERENCES departments(id),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
      updated_at TIMESTAMPTZ,
      CONSTRAINT chk_grievance_category CHECK (
        category IN ('Academic','Administration','Infrastructure','Hostel','General')
      )
    )
    ''')
    op.execute("CREATE INDEX IF NOT EXISTS ix_grievances_status ON grievances (status)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_grievances_submitted_by ON grievances (submitted_by)")
    op.execute("CREATE INDEX IF NOT EXISTS ix_grievances_created_at ON grievances (created_at)")

    op.execute(r'''
    CREATE TABLE IF NOT EXISTS grievance_attachments (
      id SERIAL PRIMARY KEY,
      grievance_id VARCHAR(36) NOT NULL REFERENCES grievances(id) ON DELETE CASCADE,
      url TEXT NOT NULL,
      public_id VARCHAR(255) NOT NULL,
      uploaded_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    ''')
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_grievance_attachments_grievance_id "
        "ON grievance_attachments (grievance_id)"
    )

    op.execute(r'''
    CREATE TABLE IF NOT EXISTS grievance_comments (
      id SERIAL PRIMARY KEY,
      grievance_id VARCHAR(36) NOT NULL REFERENCES grievances(id) ON DELETE CASCADE,
      text TEXT NOT NULL,
      user_id VARCHAR(36) NOT NULL REFERENCES users(id),
      created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )
    ''')
    op.execute(
        "CREATE INDEX IF NOT EXISTS ix_grievance_comments_grievance_id "
        "ON grievance_comments (grievance_id)"
    )


def downgrade():
    op.execute('DROP TABLE IF EXISTS grievance_comments CASCADE;')
    op.execute('DROP TABLE IF EXISTS grievance_attachments CASCADE;')
    op.execute('DROP TABLE IF EXISTS grievances CASCADE;')
    op.execute('DROP TABLE IF EXISTS departments CASCADE;')
    op.execute('DROP TABLE IF EXISTS users CASCADE;')
