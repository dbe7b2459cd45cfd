from pathlib import Path

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from db.models import Base

IN_MEMORY = ":memory:"


def init_db(echo: bool = False, *, db_file: str | Path = "acb_tracker.db", reset: bool = False) -> Session:
    if str(db_file) == IN_MEMORY:
        url = "sqlite:///:memory:"
    else:
        path = Path(db_file)
        if reset and path.exists():
            path.unlink()
        path.parent.mkdir(parents=True, exist_ok=True)
        url = f"sqlite:///{path}"

    engine: Engine = create_engine(url, echo=echo)

    Base.metadata.create_all(engine)
    return sessionmaker(engine)()
