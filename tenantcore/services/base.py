"""
Session handling shared by the services.

Every operation opens its own session from the factory; the engine's
connection pool is the only thing shared between operations. Writes run
inside `session.begin()`, so any exception (including cancellation of the
caller) rolls back every statement of the operation together.

Database errors are logged here with full context and re-raised as
StorageError, which never carries the raw driver message to callers.
"""
from contextlib import contextmanager
from typing import Callable, Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from tenantcore.core.exceptions import StorageError
from tenantcore.utils.logging import get_logger

logger = get_logger(__name__)


@contextmanager
def storage_errors(operation: str, **context) -> Iterator[None]:
    try:
        yield
    except SQLAlchemyError as exc:
        logger.error(
            f"Storage failure during {operation}: {type(exc).__name__}: {exc}",
            exc_info=True,
            extra=context
        )
        raise StorageError(operation, exc) from exc


class SessionService:
    """Base for services that talk to the database through a session factory."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    @contextmanager
    def reading(self, operation: str, **context) -> Iterator[Session]:
        with storage_errors(operation, **context):
            with self.session_factory() as session:
                yield session

    @contextmanager
    def writing(self, operation: str, **context) -> Iterator[Session]:
        with storage_errors(operation, **context):
            with self.session_factory() as session:
                with session.begin():
                    yield session
