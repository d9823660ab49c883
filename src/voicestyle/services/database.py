import logging
from datetime import datetime, timezone
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from voicestyle.config import DATABASE_URL
from voicestyle.model.User import User

_logger = logging.getLogger(__name__)


def make_engine(database_url: str) -> Engine:
    """Create an engine for the given URL; SQLite connections may be shared across threads."""
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {},
    )


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db_session() -> Session:
    """Get a database session. The caller is responsible for closing it."""
    return SessionLocal()


def get_user_by_email(email: str) -> User | None:
    """
    Retrieve user from the database by email.

    Args:
        email (str): The user's email address

    Returns:
        User | None: User object if found, None otherwise
    """
    db = get_db_session()
    try:
        return db.query(User).filter(User.email == email).first()
    except Exception as e:
        _logger.error(f"Error retrieving user by email {email}: {str(e)}", exc_info=True)
        raise
    finally:
        db.close()


def store_user(email: str, business_type: str = None, onboarding_step: str = None) -> User:
    """Create or update a user record."""
    session = get_db_session()
    try:
        user = session.query(User).filter(User.email == email).first()
        if user:
            if business_type is not None:
                user.business_type = business_type
            if onboarding_step is not None:
                user.onboarding_step = onboarding_step
        else:
            user = User(
                email=email,
                business_type=business_type,
                onboarding_step=onboarding_step,
                created_at=datetime.now(timezone.utc),
            )
            session.add(user)

        session.commit()
        session.refresh(user)
        return user
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
