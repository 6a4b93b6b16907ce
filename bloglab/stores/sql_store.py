"""Relational adapter: normalized tables behind async SQLAlchemy.

Author display data is never copied into posts here. Counters live on the
post row and are changed in the same transaction as the like/comment row.
"""

from contextlib import asynccontextmanager
from contextvars import ContextVar
from typing import Any, AsyncIterator, Dict, List, Optional, Set
import logging

from sqlalchemy import and_, delete, func, or_, select, update
from sqlalchemy.exc import DataError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from bloglab.config import Settings
from bloglab.db.session import close_db, create_engine, create_session_factory, drop_db, init_db, session_scope
from bloglab.exceptions import ConflictError, StoreUnavailableError, ValidationError
from bloglab.models import Comment, Like, Post, User
from bloglab.stores.base import AtLeast, BackingStore, Contains, EntityKind, OneOf, SortSpec

logger = logging.getLogger(__name__)

MODELS = {
    EntityKind.USER: User,
    EntityKind.POST: Post,
    EntityKind.LIKE: Like,
    EntityKind.COMMENT: Comment,
}


class SqlStore(BackingStore):
    backend_name = "relational"

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        engine: Optional[AsyncEngine] = None,
    ):
        self._factory = session_factory
        self._engine = engine
        # Session of the transaction running in the current task, if any
        self._current: ContextVar[Optional[AsyncSession]] = ContextVar(
            f"sql_store_session_{id(self)}", default=None
        )

    @classmethod
    async def from_url(cls, database_url: str, settings: Settings, create_schema: bool = True) -> "SqlStore":
        engine = create_engine(database_url, settings)
        if create_schema:
            await init_db(engine)
        return cls(create_session_factory(engine), engine=engine)

    async def close(self) -> None:
        if self._engine is not None:
            await close_db(self._engine)

    async def reset_schema(self) -> None:
        """Drop and recreate every table"""
        if self._engine is None:
            raise StoreUnavailableError("No engine bound to this store")
        await drop_db(self._engine)
        await init_db(self._engine)

    # ============================================================
    # Sessions and transactions
    # ============================================================

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        """Join the current transaction, or run as a unit of work of one."""
        try:
            current = self._current.get()
            if current is not None:
                yield current
            else:
                async with session_scope(self._factory) as session:
                    yield session
        except IntegrityError as e:
            raise ConflictError(
                "Constraint violated",
                context={"detail": str(e.orig)}
            ) from e
        except DataError as e:
            raise ValidationError(
                "Value does not fit the column",
                context={"detail": str(e.orig)}
            ) from e
        except (OperationalError, OSError) as e:
            raise StoreUnavailableError(
                "Relational store unavailable",
                context={"detail": str(e)}
            ) from e

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator["SqlStore"]:
        if self._current.get() is not None:
            yield self
            return

        async with self._session() as session:
            token = self._current.set(session)
            try:
                yield self
            finally:
                self._current.reset(token)

    # ============================================================
    # Helpers
    # ============================================================

    @staticmethod
    def _model(kind: EntityKind):
        return MODELS[EntityKind(kind)]

    @staticmethod
    def _to_record(obj) -> Dict[str, Any]:
        return {c.key: getattr(obj, c.key) for c in obj.__table__.columns}

    @staticmethod
    def _conditions(model, filters: Optional[Dict[str, Any]]) -> list:
        conditions = []
        for field, expected in (filters or {}).items():
            column = getattr(model, field, None)
            if column is None:
                raise ValidationError("Unknown field", context={"entity": model.__tablename__, "field": field})
            if isinstance(expected, Contains):
                conditions.append(func.lower(column).contains(expected.value.lower(), autoescape=True))
            elif isinstance(expected, AtLeast):
                conditions.append(column >= expected.value)
            elif isinstance(expected, OneOf):
                conditions.append(column.in_(expected.values))
            elif expected is None:
                conditions.append(column.is_(None))
            else:
                conditions.append(column == expected)
        return conditions

    # ============================================================
    # BackingStore operations
    # ============================================================

    async def insert(self, kind: EntityKind, record: Dict[str, Any]) -> int:
        model = self._model(kind)
        columns = {c.key for c in model.__table__.columns}
        values = {k: v for k, v in record.items() if k in columns and not (k == "id" and v is None)}

        async with self._session() as session:
            obj = model(**values)
            session.add(obj)
            await session.flush()
            return obj.id

    async def find_by_id(self, kind: EntityKind, record_id: int) -> Optional[Dict[str, Any]]:
        model = self._model(kind)
        stmt = select(model).where(model.id == record_id).execution_options(populate_existing=True)

        async with self._session() as session:
            result = await session.execute(stmt)
            obj = result.scalar_one_or_none()
            return self._to_record(obj) if obj is not None else None

    async def update_fields(
        self,
        kind: EntityKind,
        record_id: int,
        changes: Optional[Dict[str, Any]] = None,
        increments: Optional[Dict[str, int]] = None,
    ) -> bool:
        model = self._model(kind)
        values: Dict[str, Any] = dict(changes or {})
        for field, delta in (increments or {}).items():
            values[field] = getattr(model, field) + delta

        if not values:
            return await self.find_by_id(kind, record_id) is not None

        stmt = (
            update(model)
            .where(model.id == record_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def query(
        self,
        kind: EntityKind,
        filters: Optional[Dict[str, Any]] = None,
        sort: Optional[SortSpec] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        model = self._model(kind)
        stmt = select(model).where(and_(True, *self._conditions(model, filters)))

        for field, direction in sort or ():
            column = getattr(model, field)
            stmt = stmt.order_by(column.desc() if direction == "desc" else column.asc())

        if limit is not None:
            stmt = stmt.limit(limit)

        async with self._session() as session:
            result = await session.execute(stmt.execution_options(populate_existing=True))
            return [self._to_record(obj) for obj in result.scalars().all()]

    async def count(self, kind: EntityKind, filters: Optional[Dict[str, Any]] = None) -> int:
        model = self._model(kind)
        stmt = select(func.count()).select_from(model).where(and_(True, *self._conditions(model, filters)))

        async with self._session() as session:
            result = await session.execute(stmt)
            return result.scalar() or 0

    async def delete(self, kind: EntityKind, record_id: int, cascade: bool = False) -> bool:
        kind = EntityKind(kind)
        model = self._model(kind)

        async with self.transaction():
            async with self._session() as session:
                exists = await session.execute(select(model.id).where(model.id == record_id))
                if exists.scalar_one_or_none() is None:
                    return False

                if not cascade:
                    await self._ensure_unreferenced(session, kind, record_id)
                elif kind == EntityKind.USER:
                    await self._delete_user_dependents(session, record_id)
                elif kind == EntityKind.POST:
                    await self._delete_post_dependents(session, record_id)
                elif kind == EntityKind.COMMENT:
                    await session.execute(delete(Comment).where(Comment.parent_comment_id == record_id))

                await session.execute(delete(model).where(model.id == record_id))

        logger.info(f"Deleted {kind.value} {record_id} (cascade={cascade})")
        return True

    async def _ensure_unreferenced(self, session: AsyncSession, kind: EntityKind, record_id: int) -> None:
        if kind == EntityKind.USER:
            checks = [
                select(Post.id).where(Post.user_id == record_id),
                select(Like.id).where(Like.user_id == record_id),
                select(Comment.id).where(Comment.user_id == record_id),
            ]
        elif kind == EntityKind.POST:
            checks = [
                select(Like.id).where(Like.post_id == record_id),
                select(Comment.id).where(Comment.post_id == record_id),
            ]
        elif kind == EntityKind.COMMENT:
            checks = [select(Comment.id).where(Comment.parent_comment_id == record_id)]
        else:
            checks = []

        for stmt in checks:
            result = await session.execute(stmt.limit(1))
            if result.first() is not None:
                raise ConflictError(
                    f"{kind.value} is still referenced",
                    context={"id": record_id}
                )

    async def _delete_post_dependents(self, session: AsyncSession, post_id: int) -> None:
        # Replies first so no row ever points at a deleted parent
        await session.execute(
            delete(Comment).where(and_(Comment.post_id == post_id, Comment.parent_comment_id.is_not(None)))
        )
        await session.execute(delete(Comment).where(Comment.post_id == post_id))
        await session.execute(delete(Like).where(Like.post_id == post_id))

    async def _delete_user_dependents(self, session: AsyncSession, user_id: int) -> None:
        post_ids = list((await session.execute(select(Post.id).where(Post.user_id == user_id))).scalars())

        comment_ids: Set[int] = set(
            (await session.execute(
                select(Comment.id).where(or_(Comment.user_id == user_id, Comment.post_id.in_(post_ids)))
            )).scalars()
        )
        if comment_ids:
            await session.execute(delete(Comment).where(Comment.parent_comment_id.in_(comment_ids)))
            await session.execute(delete(Comment).where(Comment.id.in_(comment_ids)))

        await session.execute(delete(Like).where(or_(Like.user_id == user_id, Like.post_id.in_(post_ids))))
        await session.execute(delete(Post).where(Post.id.in_(post_ids)))
