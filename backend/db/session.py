import os
import re

from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

load_dotenv()


def _normalize_database_url(raw_url: str) -> str:
    cleaned = re.sub(r"\s+", "", (raw_url or "").strip())
    if cleaned.startswith("postgres://"):
        cleaned = "postgresql://" + cleaned[len("postgres://") :]
    return cleaned


def engine_options(url: str) -> dict:
    options = {"pool_pre_ping": True}
    if url.startswith("sqlite"):
        # request handlers and the test client share the file across threads
        options["connect_args"] = {"check_same_thread": False}
    elif url.startswith("postgresql"):
        options["pool_size"] = int(os.getenv("DB_POOL_SIZE", "5"))
        options["max_overflow"] = int(os.getenv("DB_MAX_OVERFLOW", "10"))
    return options


DATABASE_URL = _normalize_database_url(os.getenv("DATABASE_URL", "sqlite:///./color_grid.db"))

engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
