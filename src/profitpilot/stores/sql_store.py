"""
SQL Store — budgets, forecast settings and snapshots in any SQL database.

Works with PostgreSQL, MySQL, SQLite, SQL Server, etc. via SQLAlchemy.
Tables are created on first use; snapshots live in ``pl_snapshots``.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime
from typing import Any

from pydantic import ValidationError
from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    select,
    text,
    update,
)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from profitpilot.models.budget import (
    BudgetLineItem,
    DayValue,
    ForecastSettings,
    TrackingType,
)
from profitpilot.models.report import Snapshot
from profitpilot.stores.base import (
    BudgetItemStore,
    ForecastSettingsStore,
    SnapshotService,
    StoreBundle,
    StoreError,
)

logger = logging.getLogger("profitpilot.stores.sql")

metadata = MetaData()

budget_items = Table(
    "budget_items",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("year", Integer, nullable=False, index=True),
    Column("month", Integer, nullable=False, index=True),
    Column("category", String(255), nullable=False, default=""),
    Column("name", String(255), nullable=False),
    Column("budget_amount", Float, nullable=False, default=0.0),
    Column("actual_amount", Float),
    Column("forecast_amount", Float),
    Column("position", Integer, nullable=False, default=0),
    Column("created_at", DateTime, default=datetime.utcnow),
)

budget_item_tracking = Table(
    "budget_item_tracking",
    metadata,
    Column("budget_item_id", String(36), primary_key=True),
    Column("tracking_type", String(32), nullable=False),
)

budget_item_daily_values = Table(
    "budget_item_daily_values",
    metadata,
    Column("budget_item_id", String(36), nullable=False),
    Column("year", Integer, nullable=False),
    Column("month", Integer, nullable=False),
    Column("day", Integer, nullable=False),
    Column("value", Float),
    UniqueConstraint("budget_item_id", "year", "month", "day"),
)

cost_item_forecast_settings = Table(
    "cost_item_forecast_settings",
    metadata,
    Column("item_name", String(255), nullable=False),
    Column("year", Integer, nullable=False),
    Column("month", Integer, nullable=False),
    Column("method", String(32), nullable=False),
    Column("discrete_values", Text),
    UniqueConstraint("item_name", "year", "month"),
)

pl_snapshots = Table(
    "pl_snapshots",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("year", Integer, nullable=False),
    Column("month", Integer, nullable=False),
    Column("category", String(255), nullable=False, default=""),
    Column("name", String(255), nullable=False),
    Column("budget_amount", Float, nullable=False, default=0.0),
    Column("actual_amount", Float),
    Column("forecast_amount", Float),
    Column("budget_variance", Float),
    Column("forecast_variance", Float),
    Column("captured_at", DateTime, nullable=False),
)


class SQLDatabase:
    """Lazily-created SQLAlchemy engine shared by the SQL stores.

    Usage::

        db = SQLDatabase("sqlite:///profitpilot.db")
        stores = create_stores({"connection_string": "sqlite:///profitpilot.db"})
    """

    def __init__(self, connection_string: str, create_tables: bool = True) -> None:
        self.connection_string = connection_string
        self.create_tables = create_tables
        self._engine: Engine | None = None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self.connection_string)
            if self.create_tables:
                metadata.create_all(self._engine)
        return self._engine

    async def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None

    async def ping(self) -> bool:
        """Test database connectivity."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.warning("SQL connectivity check failed: %s", e)
            return False


class _SQLStoreMixin:
    def __init__(self, db: SQLDatabase) -> None:
        self.db = db

    async def validate_credentials(self) -> bool:
        if not self.db.connection_string:
            return False
        return await self.db.ping()

    async def close(self) -> None:
        await self.db.close()


class SQLBudgetItemStore(_SQLStoreMixin, BudgetItemStore):
    """Budget items and their tracking rows in SQL tables."""

    name = "sql"

    async def fetch(self, year: int, month: int) -> list[BudgetLineItem]:
        try:
            with self.db.engine.connect() as conn:
                rows = conn.execute(
                    select(budget_items)
                    .where(budget_items.c.year == year, budget_items.c.month == month)
                    .order_by(budget_items.c.position, budget_items.c.created_at)
                ).mappings().all()
                ids = [r["id"] for r in rows]
                tracking = {
                    t["budget_item_id"]: t["tracking_type"]
                    for t in conn.execute(
                        select(budget_item_tracking).where(
                            budget_item_tracking.c.budget_item_id.in_(ids)
                        )
                    ).mappings()
                } if ids else {}
                daily_rows = conn.execute(
                    select(budget_item_daily_values)
                    .where(
                        budget_item_daily_values.c.year == year,
                        budget_item_daily_values.c.month == month,
                    )
                    .order_by(budget_item_daily_values.c.day)
                ).mappings().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to fetch budget items for {year}-{month:02d}: {e}") from e

        daily: dict[str, list[DayValue]] = {}
        for d in daily_rows:
            daily.setdefault(d["budget_item_id"], []).append(DayValue(day=d["day"], value=d["value"]))

        items: list[BudgetLineItem] = []
        for r in rows:
            data: dict[str, Any] = {
                "id": r["id"],
                "category": r["category"] or "",
                "name": r["name"],
                "budget_amount": r["budget_amount"],
                "actual_amount": r["actual_amount"],
                "forecast_amount": r["forecast_amount"],
                "daily_values": daily.get(r["id"], []),
                "year": r["year"],
                "month": r["month"],
            }
            if r["id"] in tracking:
                data["tracking_type"] = tracking[r["id"]]
            items.append(BudgetLineItem(**data))

        logger.info("Fetched %d budget items for %d-%02d from SQL", len(items), year, month)
        return items

    async def update_forecast(self, item_id: str, forecast_amount: float | None) -> None:
        try:
            with self.db.engine.begin() as conn:
                conn.execute(
                    update(budget_items)
                    .where(budget_items.c.id == item_id)
                    .values(forecast_amount=forecast_amount)
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update forecast for {item_id}: {e}") from e

    async def update_tracking_type(self, item_id: str, tracking_type: TrackingType) -> None:
        value = TrackingType(tracking_type).value
        try:
            with self.db.engine.begin() as conn:
                conn.execute(
                    delete(budget_item_tracking).where(
                        budget_item_tracking.c.budget_item_id == item_id
                    )
                )
                conn.execute(
                    budget_item_tracking.insert().values(budget_item_id=item_id, tracking_type=value)
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to update tracking type for {item_id}: {e}") from e

    async def save_daily_values(
        self, item_id: str, year: int, month: int, daily_values: list[DayValue]
    ) -> None:
        if not daily_values:
            return
        t = budget_item_daily_values
        try:
            with self.db.engine.begin() as conn:
                conn.execute(
                    delete(t).where(
                        t.c.budget_item_id == item_id,
                        t.c.year == year,
                        t.c.month == month,
                        t.c.day.in_([d.day for d in daily_values]),
                    )
                )
                conn.execute(
                    t.insert(),
                    [
                        {"budget_item_id": item_id, "year": year, "month": month, "day": d.day, "value": d.value}
                        for d in daily_values
                    ],
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to save daily values for {item_id}: {e}") from e

    async def replace_month(self, year: int, month: int, items: list[BudgetLineItem]) -> int:
        now = datetime.utcnow()
        try:
            with self.db.engine.begin() as conn:
                conn.execute(
                    delete(budget_items).where(
                        budget_items.c.year == year, budget_items.c.month == month
                    )
                )
                if items:
                    conn.execute(
                        budget_items.insert(),
                        [
                            {
                                "id": str(uuid.uuid4()),
                                "year": year,
                                "month": month,
                                "category": i.category,
                                "name": i.name,
                                "budget_amount": i.budget_amount,
                                "actual_amount": i.actual_amount or None,
                                "forecast_amount": i.forecast_amount or None,
                                "position": position,
                                "created_at": now,
                            }
                            for position, i in enumerate(items)
                        ],
                    )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to replace budget items for {year}-{month:02d}: {e}") from e

        logger.info("Replaced budget items for %d-%02d with %d rows", year, month, len(items))
        return len(items)


class SQLForecastSettingsStore(_SQLStoreMixin, ForecastSettingsStore):
    """Forecast settings in the ``cost_item_forecast_settings`` table."""

    name = "sql"

    async def get(self, item_name: str, year: int, month: int) -> ForecastSettings | None:
        t = cost_item_forecast_settings
        try:
            with self.db.engine.connect() as conn:
                row = conn.execute(
                    select(t.c.method, t.c.discrete_values).where(
                        t.c.item_name == item_name, t.c.year == year, t.c.month == month
                    )
                ).mappings().first()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load forecast settings for {item_name!r}: {e}") from e

        if row is None:
            return None
        try:
            values = json.loads(row["discrete_values"]) if row["discrete_values"] else {}
            return ForecastSettings(method=row["method"], discrete_values=values or {})
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Ignoring malformed forecast settings for %r: %s", item_name, e)
            return None

    async def upsert(
        self, item_name: str, year: int, month: int, settings: ForecastSettings
    ) -> None:
        t = cost_item_forecast_settings
        try:
            with self.db.engine.begin() as conn:
                conn.execute(
                    delete(t).where(t.c.item_name == item_name, t.c.year == year, t.c.month == month)
                )
                conn.execute(
                    t.insert().values(
                        item_name=item_name,
                        year=year,
                        month=month,
                        method=settings.method.value,
                        discrete_values=json.dumps(settings.discrete_values),
                    )
                )
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to save forecast settings for {item_name!r}: {e}") from e


class SQLSnapshotService(_SQLStoreMixin, SnapshotService):
    """P&L snapshots in the ``pl_snapshots`` table."""

    name = "sql"

    async def store(
        self,
        year: int,
        month: int,
        category: str,
        name: str,
        budget_amount: float,
        actual_amount: float | None,
        forecast_amount: float | None,
    ) -> bool:
        try:
            with self.db.engine.begin() as conn:
                conn.execute(
                    pl_snapshots.insert().values(
                        year=year,
                        month=month,
                        category=category,
                        name=name,
                        budget_amount=budget_amount,
                        actual_amount=actual_amount,
                        forecast_amount=forecast_amount,
                        budget_variance=None if actual_amount is None else actual_amount - budget_amount,
                        forecast_variance=None if forecast_amount is None else forecast_amount - budget_amount,
                        captured_at=datetime.utcnow(),
                    )
                )
        except SQLAlchemyError as e:
            logger.error("Error storing snapshot for %r: %s", name, e)
            return False
        return True

    async def get_latest(self, year: int, month: int) -> list[Snapshot]:
        """Latest stored row of every item in the month."""
        t = pl_snapshots
        try:
            with self.db.engine.connect() as conn:
                rows = conn.execute(
                    select(t).where(t.c.year == year, t.c.month == month).order_by(t.c.id)
                ).mappings().all()
        except SQLAlchemyError as e:
            raise StoreError(f"Failed to load snapshots for {year}-{month:02d}: {e}") from e

        latest: dict[tuple[str, str], Any] = {}
        for r in rows:
            latest[(r["category"] or "", r["name"])] = r

        return [
            Snapshot(
                category=r["category"] or "",
                name=r["name"],
                budget_amount=r["budget_amount"] or 0.0,
                actual_amount=r["actual_amount"],
                forecast_amount=r["forecast_amount"],
                budget_variance=r["budget_variance"],
                forecast_variance=r["forecast_variance"],
                captured_at=r["captured_at"],
            )
            for r in latest.values()
        ]


def create_stores(credentials: dict[str, Any] | None = None, **options: Any) -> StoreBundle:
    """Build the SQL store bundle from a ``connection_string`` credential."""
    db = SQLDatabase(
        (credentials or {}).get("connection_string", ""),
        create_tables=bool(options.get("create_tables", True)),
    )
    return StoreBundle(
        items=SQLBudgetItemStore(db),
        settings=SQLForecastSettingsStore(db),
        snapshots=SQLSnapshotService(db),
        backend="sql",
    )
