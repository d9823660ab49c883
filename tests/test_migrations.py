"""Tests for schema migrations"""
import pytest
from sqlalchemy import inspect, text
from voicestyle.model.CommunicationStyle import VOICE_TRAINING_MIGRATION
from voicestyle.services.migrations import (
    MigrationError,
    apply_migrations,
    pending_migrations,
    split_statements,
)


class TestMigrations:
    """Test applying versioned SQL migrations"""

    def test_apply_all_migrations_creates_tables(self, db_engine):
        applied = apply_migrations(db_engine)

        assert applied[-1] == VOICE_TRAINING_MIGRATION
        inspector = inspect(db_engine)
        assert inspector.has_table('users')
        assert inspector.has_table('communication_styles')
        columns = {column['name'] for column in inspector.get_columns('communication_styles')}
        assert {'analysis_status', 'analysis_started_at', 'email_sample_count'} <= columns
        assert pending_migrations(db_engine) == []

    def test_apply_migrations_is_idempotent(self, db_engine):
        apply_migrations(db_engine)

        assert apply_migrations(db_engine) == []
        with db_engine.connect() as conn:
            count = conn.execute(text('SELECT COUNT(*) FROM schema_migrations')).scalar()
        assert count == 3

    def test_apply_upto_leaves_later_migrations_pending(self, db_engine):
        applied = apply_migrations(db_engine, upto='0002')

        assert applied == ['0001_create_users.sql', '0002_create_communication_styles.sql']
        assert pending_migrations(db_engine) == [VOICE_TRAINING_MIGRATION]
        columns = {column['name'] for column in inspect(db_engine).get_columns('communication_styles')}
        assert 'analysis_status' not in columns

    def test_failed_migration_is_not_stamped(self, db_engine, tmp_path):
        migrations_dir = tmp_path / 'migrations'
        migrations_dir.mkdir()
        (migrations_dir / '0001_ok.sql').write_text('CREATE TABLE example (id INTEGER PRIMARY KEY);')
        (migrations_dir / '0002_broken.sql').write_text('ALTER TABLE missing_table ADD COLUMN name TEXT;')

        with pytest.raises(MigrationError, match='0002_broken.sql'):
            apply_migrations(db_engine, migrations_dir=migrations_dir)

        assert pending_migrations(db_engine, migrations_dir=migrations_dir) == ['0002_broken.sql']

    def test_split_statements_drops_comments(self):
        sql = "-- add columns\nALTER TABLE t ADD COLUMN a TEXT;\n\nALTER TABLE t ADD COLUMN b TEXT;\n"

        assert split_statements(sql) == [
            'ALTER TABLE t ADD COLUMN a TEXT',
            'ALTER TABLE t ADD COLUMN b TEXT',
        ]
