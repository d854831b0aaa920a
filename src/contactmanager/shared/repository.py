"""
Generic data-access repository over an async SQLAlchemy session.

Every public operation returns a ``Result``; data-access faults are logged and
converted to failure results, never raised to the caller. Writes commit per
call (per chunk for the batched variants) unless they run inside
``execute_transaction``, in which case they only flush and the transaction
scope commits once at the end.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Iterator, Mapping, Sequence
from decimal import Decimal
from typing import Any, Generic, TypeVar

from sqlalchemy import ColumnElement, delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.interfaces import ORMOption

from contactmanager.shared.database import Base
from contactmanager.shared.logging import get_logger
from contactmanager.shared.result import Result, ResultErrorKind

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=Base)

DEFAULT_BATCH_SIZE = 100

# Key in ``Session.info`` marking an open repository transaction, shared by
# every repository bound to the same session.
_TRANSACTION_KEY = "repository_transaction"

Selector = ColumnElement[Any] | Sequence[ColumnElement[Any]]


class InvalidArgumentError(ValueError):
    """A required repository argument was missing or empty."""


class TransactionAbortedError(RuntimeError):
    """A repository call inside a transaction scope reported a failure."""


def chunked(items: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    """Yield consecutive slices of ``items`` holding at most ``size`` elements."""
    if size < 1:
        raise InvalidArgumentError("batch_size must be at least 1")
    for start in range(0, len(items), size):
        yield items[start:start + size]


class GenericRepository(Generic[ModelT]):
    """Result-returning data-access facade for one mapped model.

    Subclasses set ``model``; the generic class can also be used directly by
    passing ``model=`` to the constructor.
    """

    model: type[ModelT]

    def __init__(
        self,
        session: AsyncSession,
        model: type[ModelT] | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        """Initialize repository with database session.

        Args:
            session: Async database session.
            model: Mapped class, overriding the class-level ``model``.
            batch_size: Default chunk size for batched writes.
        """
        if session is None:
            raise InvalidArgumentError("session is required")
        resolved = model or getattr(type(self), "model", None)
        if resolved is None:
            raise InvalidArgumentError("model is required")
        self._session = session
        self._model: type[ModelT] = resolved
        self._batch_size = batch_size

    # -- reads -------------------------------------------------------------

    async def get_list(
        self,
        where: ColumnElement[bool] | None = None,
        order_by: Sequence[ColumnElement[Any]] | None = None,
        includes: Sequence[ORMOption] | None = None,
        selector: Selector | None = None,
        skip: int | None = None,
        take: int | None = None,
        read_only: bool = False,
    ) -> Result[list[Any]]:
        """Load matching rows.

        Args:
            where: Boolean filter clause; all rows when omitted.
            order_by: Order clauses applied in sequence.
            includes: Loader options for eager-loading relationships.
            selector: Column(s) to project; entities when omitted.
            skip: Number of rows to skip.
            take: Maximum number of rows to return.
            read_only: Detach loaded entities from the session.

        Returns:
            Result holding the list of entities, scalars or row tuples.
        """
        try:
            stmt = self._apply_conditions(
                self._select(selector), where, order_by, includes, skip, take, selector
            )
            result = await self._session.execute(stmt)
            rows = self._collect(result, selector)
            if read_only:
                self._detach(rows)
            return Result.ok(rows)
        except Exception as exc:
            return await self._failure(
                "get_list", exc, "An error occurred while retrieving the data."
            )

    async def get_single(
        self,
        where: ColumnElement[bool] | None = None,
        includes: Sequence[ORMOption] | None = None,
        selector: Selector | None = None,
        read_only: bool = False,
    ) -> Result[Any]:
        """Load the first matching row; ``data`` is None when nothing matches."""
        try:
            stmt = self._apply_conditions(
                self._select(selector), where, None, includes, None, 1, selector
            )
            result = await self._session.execute(stmt)
            rows = self._collect(result, selector)
            if read_only:
                self._detach(rows)
            return Result.ok(rows[0] if rows else None)
        except Exception as exc:
            return await self._failure(
                "get_single", exc, "An error occurred while retrieving the data."
            )

    # -- inserts -----------------------------------------------------------

    async def add(self, entity: ModelT) -> Result[None]:
        try:
            if entity is None:
                raise InvalidArgumentError("entity is required")
            self._session.add(entity)
            await self._save()
            return Result.ok()
        except Exception as exc:
            return await self._failure("add", exc, "An error occurred while adding the data.")

    async def add_batch(
        self,
        entities: Iterable[ModelT],
        batch_size: int | None = None,
    ) -> Result[int]:
        """Insert entities chunk by chunk, one commit per chunk.

        A failing chunk stops the remaining chunks; chunks committed before it
        stay in the store.

        Returns:
            Result holding the number of inserted entities.
        """
        try:
            items = list(entities) if entities is not None else []
            if not items:
                raise InvalidArgumentError("entities must not be empty")
            inserted = 0
            for batch in chunked(items, batch_size or self._batch_size):
                self._session.add_all(batch)
                await self._save()
                inserted += len(batch)
            return Result.ok(inserted)
        except Exception as exc:
            return await self._failure(
                "add_batch", exc, "An error occurred while adding the data."
            )

    # -- updates -----------------------------------------------------------

    async def update(self, entity: ModelT) -> Result[None]:
        """Overwrite the stored row with every attribute of ``entity``.

        The entity may be detached or transient; it is merged into the session
        by primary key. Last write wins.
        """
        try:
            if entity is None:
                raise InvalidArgumentError("entity is required")
            await self._session.merge(entity)
            await self._save()
            return Result.ok()
        except Exception as exc:
            return await self._failure(
                "update", exc, "An error occurred while updating the data."
            )

    async def update_by_filter(
        self,
        where: ColumnElement[bool] | None,
        mutator: Callable[[ModelT], None],
        batch_size: int | None = None,
    ) -> Result[int]:
        """Load matching rows, apply ``mutator`` to each, save chunk by chunk.

        Returns:
            Result holding the number of entities the mutator changed.
        """
        try:
            if mutator is None:
                raise InvalidArgumentError("mutator is required")
            stmt = select(self._model)
            if where is not None:
                stmt = stmt.where(where)
            entities = list((await self._session.execute(stmt)).scalars().all())

            updated = 0
            for batch in chunked(entities, batch_size or self._batch_size):
                for entity in batch:
                    mutator(entity)
                updated += sum(1 for entity in batch if self._session.is_modified(entity))
                await self._save()
            return Result.ok(updated)
        except Exception as exc:
            return await self._failure(
                "update_by_filter", exc, "An error occurred while updating the data."
            )

    async def execute_update(
        self,
        where: ColumnElement[bool],
        values: Mapping[str, Any],
    ) -> Result[int]:
        """Run a server-side UPDATE without loading rows.

        Entities already loaded in the session keep their old values.

        Returns:
            Result holding the number of affected rows.
        """
        try:
            if where is None:
                raise InvalidArgumentError("where is required")
            if not values:
                raise InvalidArgumentError("values must not be empty")
            stmt = (
                update(self._model)
                .where(where)
                .values(**dict(values))
                .execution_options(synchronize_session=False)
            )
            result = await self._session.execute(stmt)
            await self._save()
            return Result.ok(result.rowcount)
        except Exception as exc:
            return await self._failure(
                "execute_update", exc, "An error occurred while updating the data."
            )

    # -- deletes -----------------------------------------------------------

    async def remove(self, entity: ModelT) -> Result[None]:
        try:
            if entity is None:
                raise InvalidArgumentError("entity is required")
            await self._session.delete(await self._attach(entity))
            await self._save()
            return Result.ok()
        except Exception as exc:
            return await self._failure(
                "remove", exc, "An error occurred while removing the data."
            )

    async def remove_batch(
        self,
        entities: Iterable[ModelT],
        batch_size: int | None = None,
    ) -> Result[int]:
        """Delete entities chunk by chunk, one commit per chunk."""
        try:
            items = list(entities) if entities is not None else []
            if not items:
                raise InvalidArgumentError("entities must not be empty")
            removed = 0
            for batch in chunked(items, batch_size or self._batch_size):
                for entity in batch:
                    await self._session.delete(await self._attach(entity))
                await self._save()
                removed += len(batch)
            return Result.ok(removed)
        except Exception as exc:
            return await self._failure(
                "remove_batch", exc, "An error occurred while removing the data."
            )

    async def remove_by_filter(self, where: ColumnElement[bool]) -> Result[int]:
        """Run a server-side DELETE without loading rows.

        Entities already loaded in the session are left in place.
        """
        try:
            if where is None:
                raise InvalidArgumentError("where is required")
            stmt = delete(self._model).where(where).execution_options(
                synchronize_session=False
            )
            result = await self._session.execute(stmt)
            await self._save()
            return Result.ok(result.rowcount)
        except Exception as exc:
            return await self._failure(
                "remove_by_filter", exc, "An error occurred while removing the data."
            )

    # -- aggregates --------------------------------------------------------

    async def exists(self, where: ColumnElement[bool]) -> Result[bool]:
        try:
            if where is None:
                raise InvalidArgumentError("where is required")
            stmt = select(select(self._model).where(where).exists())
            return Result.ok(bool(await self._session.scalar(stmt)))
        except Exception as exc:
            return await self._failure(
                "exists", exc, "An error occurred while checking the existence of the data."
            )

    async def count(self, where: ColumnElement[bool] | None = None) -> Result[int]:
        try:
            stmt = select(func.count()).select_from(self._model)
            if where is not None:
                stmt = stmt.where(where)
            return Result.ok(int(await self._session.scalar(stmt) or 0))
        except Exception as exc:
            return await self._failure(
                "count", exc, "An error occurred while counting the data."
            )

    async def sum(
        self, where: ColumnElement[bool] | None, selector: ColumnElement[Any]
    ) -> Result[Decimal]:
        """Sum of ``selector`` over matching rows; zero when nothing matches."""
        result = await self._aggregate(
            "sum", func.sum, where, selector, "An error occurred while calculating the sum."
        )
        if result.success and result.data is None:
            return Result.ok(Decimal(0))
        return result

    async def average(
        self, where: ColumnElement[bool] | None, selector: ColumnElement[Any]
    ) -> Result[Decimal]:
        return await self._aggregate(
            "average", func.avg, where, selector, "An error occurred while calculating the average."
        )

    async def max(
        self, where: ColumnElement[bool] | None, selector: ColumnElement[Any]
    ) -> Result[Decimal]:
        return await self._aggregate(
            "max", func.max, where, selector, "An error occurred while calculating the maximum."
        )

    async def min(
        self, where: ColumnElement[bool] | None, selector: ColumnElement[Any]
    ) -> Result[Decimal]:
        return await self._aggregate(
            "min", func.min, where, selector, "An error occurred while calculating the minimum."
        )

    # -- transactions ------------------------------------------------------

    async def execute_transaction(
        self,
        operation: Callable[[], Awaitable[Any]],
    ) -> Result[int]:
        """Run ``operation`` as one all-or-nothing unit of work.

        Repository writes made inside ``operation`` on this session flush
        instead of committing. The scope commits when ``operation`` returns
        and no repository call inside it failed; otherwise it rolls back.
        A call made while a scope is already open joins that scope.
        """
        if self._transaction_state() is not None:
            try:
                await operation()
                return Result.ok(1)
            except Exception as exc:
                return await self._failure(
                    "execute_transaction",
                    exc,
                    "An error occurred while executing the transaction.",
                )

        state = {"failed": False}
        self._session.info[_TRANSACTION_KEY] = state
        try:
            if operation is None:
                raise InvalidArgumentError("operation is required")
            await operation()
            if state["failed"]:
                raise TransactionAbortedError("a repository call inside the transaction failed")
            await self._session.commit()
            return Result.ok(1)
        except Exception as exc:
            self._session.info.pop(_TRANSACTION_KEY, None)
            await self._session.rollback()
            return await self._failure(
                "execute_transaction", exc, "An error occurred while executing the transaction."
            )
        finally:
            self._session.info.pop(_TRANSACTION_KEY, None)

    # -- helpers -----------------------------------------------------------

    def _transaction_state(self) -> dict[str, bool] | None:
        return self._session.info.get(_TRANSACTION_KEY)

    async def _save(self) -> None:
        if self._transaction_state() is not None:
            await self._session.flush()
        else:
            await self._session.commit()

    async def _attach(self, entity: ModelT) -> ModelT:
        if entity in self._session:
            return entity
        return await self._session.merge(entity)

    def _select(self, selector: Selector | None) -> Any:
        if selector is None:
            return select(self._model)
        if isinstance(selector, Sequence):
            return select(*selector).select_from(self._model)
        return select(selector).select_from(self._model)

    @staticmethod
    def _apply_conditions(
        stmt: Any,
        where: ColumnElement[bool] | None,
        order_by: Sequence[ColumnElement[Any]] | None,
        includes: Sequence[ORMOption] | None,
        skip: int | None,
        take: int | None,
        selector: Selector | None,
    ) -> Any:
        if where is not None:
            stmt = stmt.where(where)
        # loader options only apply to entity queries
        if includes and selector is None:
            stmt = stmt.options(*includes)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if skip is not None:
            stmt = stmt.offset(skip)
        if take is not None:
            stmt = stmt.limit(take)
        return stmt

    @staticmethod
    def _collect(result: Any, selector: Selector | None) -> list[Any]:
        if selector is None:
            return list(result.unique().scalars().all())
        if isinstance(selector, Sequence):
            return [tuple(row) for row in result.all()]
        return list(result.scalars().all())

    def _detach(self, rows: list[Any]) -> None:
        for row in rows:
            if isinstance(row, self._model) and row in self._session:
                self._session.expunge(row)

    async def _aggregate(
        self,
        name: str,
        function: Callable[[ColumnElement[Any]], ColumnElement[Any]],
        where: ColumnElement[bool] | None,
        selector: ColumnElement[Any],
        message: str,
    ) -> Result[Decimal]:
        try:
            if selector is None:
                raise InvalidArgumentError("selector is required")
            stmt = select(function(selector)).select_from(self._model)
            if where is not None:
                stmt = stmt.where(where)
            value = await self._session.scalar(stmt)
            if value is not None and not isinstance(value, Decimal):
                value = Decimal(str(value))
            return Result.ok(value)
        except Exception as exc:
            return await self._failure(name, exc, message)

    async def _failure(self, operation: str, exc: Exception, message: str) -> Result[Any]:
        state = self._transaction_state()
        if isinstance(exc, InvalidArgumentError):
            logger.warning(
                "Invalid repository argument",
                extra={"operation": operation, "model": self._model.__name__, "error": str(exc)},
            )
            kind = ResultErrorKind.INVALID_ARGUMENT
        else:
            logger.exception(
                "Error in %s",
                operation,
                extra={"operation": operation, "model": self._model.__name__},
            )
            kind = (
                ResultErrorKind.CONFLICT
                if isinstance(exc, IntegrityError)
                else ResultErrorKind.STORE
            )
            if state is None:
                await self._session.rollback()

        if state is not None:
            # the enclosing scope rolls back everything on exit
            state["failed"] = True
        return Result.fail(message, kind)
