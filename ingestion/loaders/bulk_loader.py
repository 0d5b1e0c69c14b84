"""
Batched writes of classified snapshot rows into the live store
"""

from typing import Any, Dict, Iterable, List, Sequence, Tuple
from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from core.exceptions import BulkWriteError, StoreUnavailableError
import logging

logger = logging.getLogger(__name__)


class BulkLoader:
    """
    Apply New / Updated sets in batches instead of row by row.

    Ensures:
    - One statement per batch of `batch_size` rows
    - Updates are matched by primary key (ORM bulk UPDATE)
    - Deletes are explicit and only ever issued by the caller
    - Nothing is committed until commit() (one commit per phase)
    """

    def __init__(self, db_session: AsyncSession, batch_size: int = 500):
        self.db = db_session
        self.batch_size = batch_size

    def _batches(self, rows: Sequence[Dict[str, Any]]) -> Iterable[Sequence[Dict[str, Any]]]:
        for i in range(0, len(rows), self.batch_size):
            yield rows[i:i + self.batch_size]

    async def insert_many(self, model, rows: Sequence[Dict[str, Any]]) -> int:
        """
        Insert new rows.

        Args:
            model: ORM model class
            rows: Column dicts, one per new row

        Returns:
            Number of rows inserted
        """
        if not rows:
            return 0

        loaded = 0
        for batch in self._batches(rows):
            try:
                await self.db.execute(insert(model), list(batch))
            except SQLAlchemyError as e:
                raise BulkWriteError(
                    f"Bulk insert into {model.__tablename__} failed",
                    context={"operation": "INSERT", "table_name": model.__tablename__, "rows": len(batch)},
                    original_exception=e
                )
            loaded += len(batch)

        logger.debug(f"Inserted {loaded} rows into {model.__tablename__}")
        return loaded

    async def update_many(self, model, rows: Sequence[Dict[str, Any]]) -> int:
        """Update existing rows, every dict must carry the full primary key"""
        if not rows:
            return 0

        updated = 0
        for batch in self._batches(rows):
            try:
                await self.db.execute(update(model), list(batch))
            except SQLAlchemyError as e:
                raise BulkWriteError(
                    f"Bulk update of {model.__tablename__} failed",
                    context={"operation": "UPDATE", "table_name": model.__tablename__, "rows": len(batch)},
                    original_exception=e
                )
            updated += len(batch)

        logger.debug(f"Updated {updated} rows in {model.__tablename__}")
        return updated

    async def update_where(self, model, values: Dict[str, Any], *criteria) -> int:
        """Set the same values on every row matching the criteria"""
        try:
            result = await self.db.execute(
                update(model).where(*criteria).values(**values)
                .execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise BulkWriteError(
                f"Update of {model.__tablename__} failed",
                context={"operation": "UPDATE", "table_name": model.__tablename__},
                original_exception=e
            )
        return result.rowcount or 0

    async def delete_where(self, model, *criteria) -> int:
        """Explicit out-of-band delete, returns the number of deleted rows"""
        try:
            result = await self.db.execute(
                delete(model).where(*criteria).execution_options(synchronize_session=False)
            )
        except SQLAlchemyError as e:
            raise BulkWriteError(
                f"Delete from {model.__tablename__} failed",
                context={"operation": "DELETE", "table_name": model.__tablename__},
                original_exception=e
            )

        deleted = result.rowcount or 0
        if deleted:
            logger.info(f"Deleted {deleted} rows from {model.__tablename__}")
        return deleted

    async def fetch_hashes(self, model, key_columns: Sequence, *criteria) -> Dict[Any, str]:
        """
        Load stored content hashes for one category in a single query.

        Returns:
            key -> hash, where key is the single key value or a tuple of
            values when several key columns are given
        """
        rows = await self.fetch_rows((*key_columns, model.content_hash), *criteria)
        if len(key_columns) == 1:
            return {row[0]: row[1] for row in rows}
        return {tuple(row[:-1]): row[-1] for row in rows}

    async def fetch_keys(self, key_columns: Sequence, *criteria) -> set:
        """Existing keys (single values, or tuples for several columns)"""
        rows = await self.fetch_rows(tuple(key_columns), *criteria)
        if len(key_columns) == 1:
            return {row[0] for row in rows}
        return {tuple(row) for row in rows}

    async def fetch_rows(self, columns: Tuple, *criteria) -> List[Tuple]:
        stmt = select(*columns)
        if criteria:
            stmt = stmt.where(*criteria)
        try:
            result = await self.db.execute(stmt)
        except SQLAlchemyError as e:
            raise StoreUnavailableError(
                "Reading existing rows from the live store failed",
                original_exception=e
            )
        return [tuple(row) for row in result.all()]

    async def commit(self):
        try:
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise BulkWriteError(
                "Commit of bulk changes failed",
                context={"operation": "COMMIT"},
                original_exception=e
            )
