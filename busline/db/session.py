from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
import importlib.util
from busline.core.config import settings

SQLALCHEMY_DATABASE_URL = settings.database_url
if not SQLALCHEMY_DATABASE_URL:
    raise RuntimeError("DATABASE_URL environment variable must be set")

# A plain 'postgresql://' (or legacy 'postgres://') URL makes SQLAlchemy load psycopg2.
# We ship psycopg v3, so inject its driver name when psycopg2 is not installed.
try:
    psycopg2_present = importlib.util.find_spec("psycopg2") is not None  # type: ignore
except ImportError:  # pragma: no cover
    psycopg2_present = False

if not psycopg2_present and SQLALCHEMY_DATABASE_URL.startswith(("postgres://", "postgresql://")) and "+psycopg" not in SQLALCHEMY_DATABASE_URL:
    if SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
        SQLALCHEMY_DATABASE_URL = "postgresql://" + SQLALCHEMY_DATABASE_URL[len("postgres://"):]
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgresql://", "postgresql+psycopg://", 1)

is_sqlite = SQLALCHEMY_DATABASE_URL.startswith("sqlite")

# SQLite connections are shared with the threadpool FastAPI runs sync endpoints in.
connect_args = {"check_same_thread": False} if is_sqlite else {}
engine = create_engine(SQLALCHEMY_DATABASE_URL, echo=settings.sql_echo, connect_args=connect_args)

if is_sqlite:
    @event.listens_for(engine, "connect")
    def _enable_sqlite_fk(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

SessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
