"""Application configuration and constants"""
import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Paths
BASE_DIR = Path(__file__).resolve().parent
MIGRATIONS_DIR = BASE_DIR / "migrations"

# Database
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./voicestyle.db")

# Schema reconciliation is an operator task; only apply migrations on startup when asked to
AUTO_APPLY_MIGRATIONS = os.getenv("AUTO_APPLY_MIGRATIONS", "false").strip().lower() in ("1", "true", "yes")

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Onboarding
SUPPORTED_BUSINESS_TYPES = [
    business_type.strip()
    for business_type in os.getenv(
        "SUPPORTED_BUSINESS_TYPES",
        "Electrician,Plumber,Pools & Spas,Hot tub & Spa,HVAC,Roofing,General Contractor,Landscaping,Painting,Flooring",
    ).split(",")
    if business_type.strip()
]
NEXT_STEP_AFTER_BUSINESS_TYPE = "team-setup"

# CORS Origins
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("ALLOWED_ORIGINS", "http://localhost:8000,http://127.0.0.1:8000").split(",")
    if origin.strip()
]
