# coffice/services/base.py
"""
Shared plumbing for Coffice services.

Every service owns a session and gets nested transactions plus timing of
its public operations. Timings go to the Prometheus registry only.
"""

from contextlib import contextmanager
from functools import wraps
import logging
import time
from typing import Any, Callable, Iterator, Optional, TypeVar, cast

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ServiceException
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])

# Session.info key tracking how many service transactions are open on a session
_TX_DEPTH_KEY = "coffice_tx_depth"

SLOW_OPERATION_SECONDS = 1.0


class BaseService:
    """Session holder with a unit-of-work helper and operation timing."""

    def __init__(self, db: Session):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """
        Open a unit of work on ``self.db``.

        Blocks nest per session. The outermost one commits on exit and
        rolls back on any exception; inner blocks only propagate. Driver
        errors surface as ServiceException.

        Usage:
            with self.transaction():
                self.db.add(entity)
        """
        depth = self.db.info.get(_TX_DEPTH_KEY, 0)
        self.db.info[_TX_DEPTH_KEY] = depth + 1
        outermost = depth == 0
        try:
            yield self.db
            if outermost:
                self.db.commit()
                self.logger.debug("Transaction committed")
        except SQLAlchemyError as e:
            if outermost:
                self.logger.error(f"Transaction rolled back: {e}")
                self.db.rollback()
            raise ServiceException(f"Database operation failed: {e}") from e
        except Exception:
            if outermost:
                self.db.rollback()
            raise
        finally:
            self.db.info[_TX_DEPTH_KEY] = depth

    @staticmethod
    def measure_operation(operation_name: str) -> Callable[[F], F]:
        """
        Time a service method and report it as ``operation_name``.

        Usage:
            @BaseService.measure_operation("reservation.create")
            def create(self, ...):
                ...
        """

        def decorator(func: F) -> F:
            func._operation_name = operation_name  # type: ignore[attr-defined]

            @wraps(func)
            def wrapper(self: Any, *args: Any, **kwargs: Any) -> Any:
                started = time.perf_counter()
                error_type: Optional[str] = None
                try:
                    return func(self, *args, **kwargs)
                except Exception as e:
                    error_type = type(e).__name__
                    raise
                finally:
                    elapsed = time.perf_counter() - started
                    if elapsed > SLOW_OPERATION_SECONDS:
                        self.logger.warning(f"Slow operation: {operation_name} took {elapsed:.2f}s")
                    prometheus_metrics.record_service_operation(
                        service=self.__class__.__name__,
                        operation=operation_name,
                        duration=elapsed,
                        status="error" if error_type else "success",
                        error_type=error_type,
                    )

            return cast(F, wrapper)

        return decorator

    def log_operation(self, operation: str, **context: Any) -> None:
        """Log ``operation`` at INFO with ``context`` attached as record extras."""
        self.logger.info(f"Operation: {operation}", extra={"operation": operation, **context})
