"""
Pytest configuration and shared fixtures for voicestyle tests.
"""
import pytest
import sys
import os
import time
from pathlib import Path
from sqlalchemy import text

# Set required environment variables before importing app modules
os.environ['DATABASE_URL'] = 'sqlite:///./test_voicestyle.db'
os.environ['AUTO_APPLY_MIGRATIONS'] = 'false'

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / 'src'
sys.path.insert(0, str(src_path))

from voicestyle.services.database import make_engine  # noqa: E402
from voicestyle.services.migrations import apply_migrations  # noqa: E402

APP_TABLES = ('communication_styles', 'users', 'schema_migrations')


def drop_app_tables(engine):
    with engine.begin() as conn:
        for table in APP_TABLES:
            conn.execute(text(f'DROP TABLE IF EXISTS {table}'))


def create_user(engine, user_id='user-1', email='owner@example.com'):
    with engine.begin() as conn:
        conn.execute(
            text('INSERT INTO users (id, email) VALUES (:id, :email)'),
            {'id': user_id, 'email': email},
        )
    return user_id


@pytest.fixture(autouse=True)
def reset_test_environment():
    """Reset the shared application database after each test"""
    yield

    from voicestyle.services.database import engine
    drop_app_tables(engine)
    engine.dispose()

    test_db = Path('test_voicestyle.db')
    if test_db.exists():
        # Retry a few times in case file is still locked
        for _ in range(3):
            try:
                test_db.unlink()
                break
            except PermissionError:
                time.sleep(0.1)


@pytest.fixture
def db_engine(tmp_path):
    """Isolated SQLite database with no schema"""
    engine = make_engine(f"sqlite:///{tmp_path / 'styles.db'}")
    yield engine
    engine.dispose()


@pytest.fixture
def migrated_engine(db_engine):
    """Database with every migration applied"""
    apply_migrations(db_engine)
    return db_engine


@pytest.fixture
def lagging_engine(db_engine):
    """Database whose style table predates the voice training columns"""
    apply_migrations(db_engine, upto='0002')
    return db_engine


@pytest.fixture
def sample_email():
    """Sample email address for testing"""
    return 'test@example.com'
