from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from minutesflow.core.config import settings

connect_args = {}
engine_kwargs = {"pool_pre_ping": True}
if settings.DATABASE_URL.startswith("sqlite"):
    # Deferred-mode collection calls run on worker threads
    connect_args["check_same_thread"] = False
else:
    engine_kwargs.update(pool_size=5, max_overflow=10)

engine = create_engine(
    settings.DATABASE_URL,
    future=True,
    connect_args=connect_args,
    **engine_kwargs,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
