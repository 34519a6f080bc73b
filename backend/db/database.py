from sqlalchemy import create_engine, event, inspect, text
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from config import settings


_IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if _IS_SQLITE else {},
    echo=False,
)


if _IS_SQLITE:
    # Enable WAL mode for better concurrent read performance
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class Base(DeclarativeBase):
    pass


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def run_startup_migrations() -> None:
    """Apply lightweight schema fixes for databases created by older releases."""
    inspector = inspect(engine)

    def _table_columns(table_name: str) -> set[str]:
        try:
            return {col["name"] for col in inspector.get_columns(table_name)}
        except Exception:
            return set()

    client_columns = _table_columns("clients")
    checkin_columns = _table_columns("checkins")
    habit_columns = _table_columns("habit_logs")
    if not client_columns and not checkin_columns and not habit_columns:
        # Tables may not exist yet on first boot.
        return

    alter_statements: list[str] = []
    if client_columns:
        if "checkin_start_date" not in client_columns:
            alter_statements.append("ALTER TABLE clients ADD COLUMN checkin_start_date TEXT")
        if "checkin_frequency" not in client_columns:
            alter_statements.append("ALTER TABLE clients ADD COLUMN checkin_frequency TEXT DEFAULT 'weekly'")
    if checkin_columns:
        if "pt_feedback" not in checkin_columns:
            alter_statements.append("ALTER TABLE checkins ADD COLUMN pt_feedback TEXT")
        if "reviewed_at" not in checkin_columns:
            alter_statements.append("ALTER TABLE checkins ADD COLUMN reviewed_at DATETIME")
        if "reviewed_by" not in checkin_columns:
            alter_statements.append("ALTER TABLE checkins ADD COLUMN reviewed_by TEXT")
        if "status" not in checkin_columns:
            alter_statements.append("ALTER TABLE checkins ADD COLUMN status TEXT")
    if habit_columns:
        if "weight_unit" not in habit_columns:
            alter_statements.append("ALTER TABLE habit_logs ADD COLUMN weight_unit TEXT")

    if not alter_statements:
        return
    with engine.begin() as conn:
        for stmt in alter_statements:
            conn.execute(text(stmt))
