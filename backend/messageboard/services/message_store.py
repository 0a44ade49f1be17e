"""Data access for the ``messages`` table.

Every operation runs in its own transaction. Database and validation errors
are translated into :mod:`messageboard.core.errors` so callers never see
SQLAlchemy or pydantic exceptions.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Mapping, Union

from pydantic import ValidationError
from sqlalchemy import delete, func, select
from sqlalchemy.exc import DataError, DBAPIError, IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from messageboard.core.errors import ConnectionFailure, ConstraintViolation, NotFound
from messageboard.models.message import Message
from messageboard.schemas.message import MessageFields, MessageRecord

logger = logging.getLogger(__name__)

NON_NULL_COLUMNS = ("author", "likes", "has_image")


def _validate_record(message: Union[MessageRecord, Mapping]) -> MessageRecord:
    if isinstance(message, MessageRecord):
        return message
    try:
        return MessageRecord.model_validate(dict(message))
    except ValidationError as exc:
        raise ConstraintViolation(str(exc)) from exc


def _validate_fields(fields: Mapping) -> dict:
    if not fields:
        raise ConstraintViolation("no fields to update")
    unknown = set(fields) - set(MessageFields.model_fields)
    if unknown:
        raise ConstraintViolation(f"unknown fields: {', '.join(sorted(unknown))}")
    for column in NON_NULL_COLUMNS:
        if column in fields and fields[column] is None:
            raise ConstraintViolation(f"{column} may not be null")
    try:
        validated = MessageFields.model_validate(dict(fields))
    except ValidationError as exc:
        raise ConstraintViolation(str(exc)) from exc
    return validated.model_dump(include=set(fields))


class MessageStore:
    def __init__(self, session_factory):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    yield session
        except (IntegrityError, DataError) as exc:
            raise ConstraintViolation(str(exc.orig)) from exc
        except (OperationalError, InterfaceError) as exc:
            raise ConnectionFailure(str(exc)) from exc
        except DBAPIError as exc:
            if exc.connection_invalidated:
                raise ConnectionFailure(str(exc)) from exc
            raise
        except OSError as exc:
            raise ConnectionFailure(str(exc)) from exc

    async def insert(self, message: Union[MessageRecord, Mapping]) -> MessageRecord:
        record = _validate_record(message)
        async with self._transaction() as session:
            session.add(Message(**record.model_dump()))
        logger.debug("Inserted message %s", record.uuid)
        return record

    async def get(self, uuid: str) -> MessageRecord:
        async with self._transaction() as session:
            result = await session.execute(select(Message).where(Message.uuid == uuid))
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFound(uuid)
            return MessageRecord.model_validate(row)

    async def list(self, page_size: int = 100) -> AsyncIterator[MessageRecord]:
        """Yield every message ordered by uuid, reading ``page_size`` rows at a time.

        Each call starts a new scan. Pages are keyed on the last uuid seen, so
        rows inserted or deleted mid-scan do not shift later pages.
        """
        last_uuid = None
        while True:
            async with self._transaction() as session:
                query = select(Message).order_by(Message.uuid).limit(page_size)
                if last_uuid is not None:
                    query = query.where(Message.uuid > last_uuid)
                result = await session.execute(query)
                page = [MessageRecord.model_validate(row) for row in result.scalars().all()]
            for record in page:
                yield record
            if len(page) < page_size:
                return
            last_uuid = page[-1].uuid

    async def page(self, offset: int, limit: int) -> List[MessageRecord]:
        async with self._transaction() as session:
            result = await session.execute(
                select(Message).order_by(Message.uuid).limit(limit).offset(offset)
            )
            return [MessageRecord.model_validate(row) for row in result.scalars().all()]

    async def count(self) -> int:
        async with self._transaction() as session:
            result = await session.execute(select(func.count()).select_from(Message))
            return int(result.scalar() or 0)

    async def update(self, uuid: str, fields: Mapping) -> MessageRecord:
        values = _validate_fields(fields)
        async with self._transaction() as session:
            result = await session.execute(select(Message).where(Message.uuid == uuid))
            row = result.scalar_one_or_none()
            if row is None:
                raise NotFound(uuid)
            for column, value in values.items():
                setattr(row, column, value)
            await session.flush()
            record = MessageRecord.model_validate(row)
        logger.debug("Updated message %s: %s", uuid, ", ".join(values))
        return record

    async def delete(self, uuid: str) -> None:
        async with self._transaction() as session:
            result = await session.execute(delete(Message).where(Message.uuid == uuid))
            if result.rowcount == 0:
                raise NotFound(uuid)
        logger.debug("Deleted message %s", uuid)

    async def clear(self) -> int:
        async with self._transaction() as session:
            result = await session.execute(delete(Message))
            removed = result.rowcount
        logger.info("Cleared %d messages", removed)
        return removed
