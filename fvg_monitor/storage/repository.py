"""
FVG result store.

FvgRepository writes detected FvgEvents to the fvg_analysis table and
reads them back for presentation. The engine is created once by the caller
and passed in; there is no module-level database handle.
"""

from typing import Iterable, List

from loguru import logger
from sqlalchemy import create_engine, select
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ..core.config import DatabaseSettings
from ..core.exceptions import StorageError
from ..core.models import FvgEvent, StoredFvg, ms_to_datetime
from .tables import Base, FvgAnalysisRecord


def create_engine_from_settings(settings: DatabaseSettings) -> Engine:
    """
    Create a SQLAlchemy engine for the configured database URL.

    In-memory SQLite databases use a single shared connection so that every
    session sees the same tables.

    Args:
        settings (DatabaseSettings): Database URL and echo flag

    Returns:
        Engine: Configured engine
    """
    url = make_url(settings.url)
    engine_kwargs = {"echo": settings.echo}

    if url.get_backend_name() == "sqlite":
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        if url.database in (None, "", ":memory:"):
            engine_kwargs["poolclass"] = StaticPool

    return create_engine(url, **engine_kwargs)


class FvgRepository:
    """
    Persistence for FVG analysis results.

    Examples:
        >>> engine = create_engine_from_settings(DatabaseSettings(url="sqlite://"))
        >>> repository = FvgRepository(engine)
        >>> repository.create_tables()
        >>> stored = repository.store(events)
        >>> [row.to_event() for row in repository.fetch_all()] == events
        True
    """

    def __init__(self, engine: Engine):
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)

    def create_tables(self) -> None:
        """Create the fvg_analysis table if it does not exist."""
        try:
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to create FVG analysis tables: {e}") from e
        logger.debug("FVG analysis tables ready")

    def store(self, events: Iterable[FvgEvent]) -> List[StoredFvg]:
        """
        Insert events in a single transaction.

        Millisecond timestamps are converted to naive UTC datetimes;
        created_at and updated_at are set automatically.

        Args:
            events: Detected FVG events

        Returns:
            List[StoredFvg]: Inserted rows, in input order

        Raises:
            StorageError: If the insert fails (nothing is written)
        """
        events = list(events)
        if not events:
            logger.debug("No FVG events to store")
            return []

        records = [
            FvgAnalysisRecord(
                fvg_type=event.fvg_type,
                start_time=ms_to_datetime(event.start_time).replace(tzinfo=None),
                end_time=ms_to_datetime(event.end_time).replace(tzinfo=None),
                gap_size=event.gap_size,
                volume=event.volume,
            )
            for event in events
        ]

        try:
            with self._session_factory() as session, session.begin():
                session.add_all(records)
                session.flush()
                stored = [StoredFvg.model_validate(record) for record in records]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to store FVG analysis results: {e}") from e

        logger.info(f"Stored {len(stored)} FVG analysis result(s)")
        return stored

    def fetch_all(self) -> List[StoredFvg]:
        """
        Return all stored results ordered by start_time ascending.

        Raises:
            StorageError: If the query fails
        """
        statement = select(FvgAnalysisRecord).order_by(
            FvgAnalysisRecord.start_time,
            FvgAnalysisRecord.created_at,
        )

        try:
            with self._session_factory() as session:
                rows = session.scalars(statement).all()
                results = [StoredFvg.model_validate(row) for row in rows]
        except SQLAlchemyError as e:
            raise StorageError(f"Failed to fetch FVG analysis results: {e}") from e

        logger.debug(f"Fetched {len(results)} FVG analysis result(s)")
        return results
