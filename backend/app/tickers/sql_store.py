"""SQLAlchemy-backed durable store."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable
from datetime import UTC
from typing import TypeVar

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    String,
    create_engine,
    func,
    nulls_last,
    select,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import DurableStoreError
from .interface import TickerStore
from .models import SortField, Ticker, TrendingBy

logger = logging.getLogger(__name__)

T = TypeVar("T")

Base = declarative_base()


class TickerRow(Base):
    __tablename__ = "crypto_tickers"

    id = Column(String(128), primary_key=True)  # Upstream identity, e.g. "btc-bitcoin"
    name = Column(String(255), nullable=False)
    symbol = Column(String(32), nullable=False, index=True)
    rank = Column(Integer, nullable=False, index=True)
    price = Column(Float, nullable=True)
    volume_24h = Column(Float, nullable=True)
    market_cap = Column(Float, nullable=True)
    percent_change_1h = Column(Float, nullable=True)
    percent_change_24h = Column(Float, nullable=True)
    percent_change_7d = Column(Float, nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def to_ticker(self) -> Ticker:
        last_updated = self.last_updated
        if last_updated.tzinfo is None:
            # SQLite drops the offset; values are always written in UTC
            last_updated = last_updated.replace(tzinfo=UTC)
        return Ticker(
            id=self.id,
            name=self.name,
            symbol=self.symbol,
            rank=self.rank,
            price=self.price,
            volume_24h=self.volume_24h,
            market_cap=self.market_cap,
            percent_change_1h=self.percent_change_1h,
            percent_change_24h=self.percent_change_24h,
            percent_change_7d=self.percent_change_7d,
            last_updated=last_updated,
        )

    @classmethod
    def from_ticker(cls, ticker: Ticker) -> TickerRow:
        return cls(
            id=ticker.id,
            name=ticker.name,
            symbol=ticker.symbol,
            rank=ticker.rank,
            price=ticker.price,
            volume_24h=ticker.volume_24h,
            market_cap=ticker.market_cap,
            percent_change_1h=ticker.percent_change_1h,
            percent_change_24h=ticker.percent_change_24h,
            percent_change_7d=ticker.percent_change_7d,
            last_updated=ticker.last_updated,
        )


def create_db_engine(url: str) -> Engine:
    """Create the engine. SQLite gets a thread-shareable connection setup."""
    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection, otherwise every thread sees an empty database
            kwargs["poolclass"] = StaticPool
        return create_engine(url, **kwargs)
    return create_engine(url, pool_pre_ping=True, pool_recycle=3600, pool_size=10, max_overflow=20)


class SqlTickerStore(TickerStore):
    """TickerStore persisted through SQLAlchemy.

    The engine is synchronous; every call runs in a worker thread so the
    event loop (and the broadcast task) never blocks on the database.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine
        self._sessions = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        self._disposed = False

    @classmethod
    def from_url(cls, url: str) -> SqlTickerStore:
        return cls(create_db_engine(url))

    async def open(self) -> None:
        await self._run(lambda: Base.metadata.create_all(self._engine))
        url = self._engine.url.render_as_string(hide_password=True)
        logger.info("Durable store ready at %s", url)

    async def close(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        await asyncio.to_thread(self._engine.dispose)
        logger.info("Durable store connections closed")

    async def find_many(
        self,
        symbol: str | None = None,
        sort: SortField | TrendingBy = SortField.RANK,
        skip: int = 0,
        limit: int = 20,
        descending: bool = False,
    ) -> list[Ticker]:
        column = getattr(TickerRow, sort.field)
        direction = column.desc() if descending else column.asc()
        stmt = (
            self._filtered(select(TickerRow), symbol)
            .order_by(nulls_last(direction), TickerRow.id.asc())
            .offset(skip)
            .limit(limit)
        )

        def query() -> list[Ticker]:
            with self._sessions() as session:
                return [row.to_ticker() for row in session.scalars(stmt)]

        return await self._run(query)

    async def count(self, symbol: str | None = None) -> int:
        stmt = self._filtered(select(func.count()).select_from(TickerRow), symbol)

        def query() -> int:
            with self._sessions() as session:
                return int(session.scalar(stmt) or 0)

        return await self._run(query)

    async def find_one(self, ticker_id: str) -> Ticker | None:
        def query() -> Ticker | None:
            with self._sessions() as session:
                row = session.get(TickerRow, ticker_id)
                return row.to_ticker() if row is not None else None

        return await self._run(query)

    async def upsert(self, ticker: Ticker) -> None:
        await self.upsert_many([ticker])

    async def upsert_many(self, tickers: Iterable[Ticker]) -> int:
        batch = list(tickers)
        if not batch:
            return 0

        def write() -> int:
            with self._sessions.begin() as session:
                for ticker in batch:
                    session.merge(TickerRow.from_ticker(ticker))
            return len(batch)

        written = await self._run(write)
        logger.debug("Upserted %d tickers", written)
        return written

    async def ping(self) -> bool:
        def query() -> bool:
            with self._engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True

        try:
            return await self._run(query)
        except DurableStoreError as e:
            logger.warning("Durable store ping failed: %s", e)
            return False

    @staticmethod
    def _filtered(stmt, symbol: str | None):
        if symbol:
            stmt = stmt.where(func.upper(TickerRow.symbol) == symbol.upper())
        return stmt

    @staticmethod
    async def _run(fn: Callable[[], T]) -> T:
        try:
            return await asyncio.to_thread(fn)
        except SQLAlchemyError as e:
            raise DurableStoreError(f"durable store operation failed: {e}") from e
