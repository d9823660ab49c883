"""Tests for the cached schema capability check"""
import logging
import pytest
from voicestyle.model.CommunicationStyle import VOICE_TRAINING_MIGRATION, CommunicationStyle
from voicestyle.services.migrations import apply_migrations
from voicestyle.services.schema_capabilities import SchemaCapabilities, SchemaCapabilityError

STYLE_TABLE = CommunicationStyle.__table__
VOICE_COLUMNS = {
    'analysis_status',
    'analysis_started_at',
    'analysis_completed_at',
    'skip_reason',
    'email_sample_count',
}


class TestSchemaCapabilities:
    """Test schema introspection and caching"""

    def test_current_schema_has_every_column(self, migrated_engine):
        capabilities = SchemaCapabilities(migrated_engine, STYLE_TABLE).load()

        assert capabilities.missing_columns() == set()
        assert capabilities.pending_migrations() == []
        capabilities.check_required()

    def test_lagging_schema_reports_pending_migration(self, lagging_engine):
        capabilities = SchemaCapabilities(lagging_engine, STYLE_TABLE).load()

        assert capabilities.missing_optional_columns() == VOICE_COLUMNS
        assert capabilities.missing_required_columns() == set()
        assert capabilities.pending_migrations() == [VOICE_TRAINING_MIGRATION]
        assert capabilities.has_column('style_profile')
        assert not capabilities.has_column('analysis_status')
        capabilities.check_required()

    def test_capabilities_are_cached_until_refresh(self, lagging_engine):
        capabilities = SchemaCapabilities(lagging_engine, STYLE_TABLE).load()

        apply_migrations(lagging_engine)
        assert not capabilities.has_column('analysis_status')

        capabilities.refresh()
        assert capabilities.has_column('analysis_status')

    def test_missing_table_fails_required_check(self, db_engine):
        capabilities = SchemaCapabilities(db_engine, STYLE_TABLE).load()

        assert capabilities.columns == frozenset()
        with pytest.raises(SchemaCapabilityError, match='user_id'):
            capabilities.check_required()

    def test_columns_load_lazily(self, migrated_engine):
        capabilities = SchemaCapabilities(migrated_engine, STYLE_TABLE)

        assert 'analysis_status' in capabilities.columns

    def test_quiet_refresh_logs_missing_columns_at_info(self, lagging_engine, caplog):
        capabilities = SchemaCapabilities(lagging_engine, STYLE_TABLE)
        caplog.set_level(logging.INFO)

        capabilities.refresh(warn=False)

        assert [r for r in caplog.records if r.levelno >= logging.WARNING] == []
        assert any(VOICE_TRAINING_MIGRATION in r.getMessage() for r in caplog.records)

    def test_startup_load_warns_about_pending_migration(self, lagging_engine, caplog):
        caplog.set_level(logging.INFO)

        SchemaCapabilities(lagging_engine, STYLE_TABLE).load()

        warnings = [r for r in caplog.records if r.levelno == logging.WARNING]
        assert len(warnings) == 1
        assert VOICE_TRAINING_MIGRATION in warnings[0].getMessage()
