from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from tontine.core.config import settings

connect_args = {}
if settings.DATABASE_URL.startswith("sqlite"):
    # FastAPI runs sync routes in a threadpool
    connect_args["check_same_thread"] = False

engine = create_engine(
    settings.DATABASE_URL,
    connect_args=connect_args,
    pool_pre_ping=True,
    echo=settings.DEBUG,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Yield a database session for one request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
