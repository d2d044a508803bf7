"""PostgreSQL persistence for accounts (SQLAlchemy async + Alembic)."""
