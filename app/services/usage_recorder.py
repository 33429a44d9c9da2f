# app/services/usage_recorder.py
import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import AsyncIterator, Callable, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import insert_for
from app.models.battery import DailyModelUsage, DailyUsageSummary, UsageLedgerEntry
from app.models.mixins import generate_uuid
from app.services.battery_ledger import BatteryLedger, utc_today
from app.services.exceptions import InsufficientBalance, InvalidRequest, StorageUnavailable, UnknownModel
from app.services.pricing import PricingTable, calculate_battery_usage, is_free_model

logger = logging.getLogger(__name__)

TOP_MODELS_PER_DAY = 3

# Upper bound per event so any charge fits the 32-bit balance columns
MAX_TOKENS_PER_EVENT = 10_000_000


@dataclass(frozen=True)
class UsageEvent:
    """One completed model invocation with known token counts"""
    user_id: str
    conversation_id: str
    message_id: str
    model: str
    input_tokens: int
    output_tokens: int
    cached: bool = False


@dataclass(frozen=True)
class UsageResult:
    battery_used: int
    new_balance: Optional[int]
    duplicate: bool = False
    free: bool = False


@dataclass(frozen=True)
class DailyUsage:
    date: date
    total_battery_used: int = 0
    total_messages: int = 0
    models: List[Dict[str, int]] = field(default_factory=list)


class UsageRecorder:
    """
    Turns usage events into ledger debits and daily rollups.

    The debit, the ledger entry and the daily summary increment are written
    in one transaction; a unique message id makes retries charge at most once.
    """

    def __init__(
        self,
        db: AsyncSession,
        clock: Callable[[], date] = utc_today,
        pricing: Optional[PricingTable] = None,
    ):
        self.db = db
        self.clock = clock
        self.pricing = pricing
        self.ledger = BatteryLedger(db)

    @staticmethod
    def _validate(event: UsageEvent) -> None:
        missing = [
            name for name in ("user_id", "conversation_id", "message_id", "model")
            if not getattr(event, name)
        ]
        if missing:
            raise InvalidRequest(f"Missing required fields: {', '.join(missing)}")
        if event.input_tokens < 0 or event.output_tokens < 0:
            raise InvalidRequest("Token counts must be >= 0")
        if max(event.input_tokens, event.output_tokens) > MAX_TOKENS_PER_EVENT:
            raise InvalidRequest(f"Token counts must be <= {MAX_TOKENS_PER_EVENT}")

    async def _find_entry(self, message_id: str) -> Optional[UsageLedgerEntry]:
        result = await self.db.execute(
            select(UsageLedgerEntry).where(UsageLedgerEntry.message_id == message_id)
        )
        return result.scalar_one_or_none()

    @staticmethod
    def _replay(entry: UsageLedgerEntry, event: UsageEvent) -> UsageResult:
        if entry.user_id != event.user_id:
            raise InvalidRequest("messageId has already been used")
        logger.info(f"Usage for message {event.message_id} already recorded, not charging again")
        return UsageResult(battery_used=entry.battery_used, new_balance=entry.balance_after, duplicate=True)

    async def _increment_daily_summary(self, event: UsageEvent, cost: int, today: date) -> None:
        summary = insert_for(self.db, DailyUsageSummary).values(
            id=generate_uuid(),
            user_id=event.user_id,
            date=today,
            total_battery_used=cost,
            total_messages=1,
        )
        await self.db.execute(summary.on_conflict_do_update(
            index_elements=["user_id", "date"],
            set_={
                "total_battery_used": DailyUsageSummary.total_battery_used + summary.excluded.total_battery_used,
                "total_messages": DailyUsageSummary.total_messages + 1,
                "updated_at": func.now(),
            },
        ))

        per_model = insert_for(self.db, DailyModelUsage).values(
            id=generate_uuid(),
            user_id=event.user_id,
            date=today,
            model=event.model,
            message_count=1,
        )
        await self.db.execute(per_model.on_conflict_do_update(
            index_elements=["user_id", "date", "model"],
            set_={"message_count": DailyModelUsage.message_count + 1},
        ))

    async def track_usage(self, event: UsageEvent) -> UsageResult:
        """
        Charge a usage event against the user's battery.

        Raises:
            InvalidRequest: missing fields, negative tokens or a reused messageId
            UnknownModel: no pricing rule for the model
            InsufficientBalance: cost exceeds the balance; nothing is written
            StorageUnavailable: the database failed; nothing is written
        """
        self._validate(event)

        # Local models are free and never touch the ledger
        if is_free_model(event.model):
            return UsageResult(battery_used=0, new_balance=None, free=True)

        try:
            cost = calculate_battery_usage(
                event.model, event.input_tokens, event.output_tokens, event.cached, self.pricing
            )
        except UnknownModel:
            logger.error(f"Pricing lookup failed for model '{event.model}' (message {event.message_id})")
            raise

        today = self.clock()
        try:
            existing = await self._find_entry(event.message_id)
            if existing:
                try:
                    return self._replay(existing, event)
                finally:
                    await self.db.rollback()

            await self.ledger.get_account(event.user_id)
            new_balance = await self.ledger.debit(
                event.user_id,
                cost,
                description=f"Used {event.model} - {event.input_tokens + event.output_tokens} tokens",
                details={
                    "conversationId": event.conversation_id,
                    "messageId": event.message_id,
                    "model": event.model,
                },
            )
            self.db.add(UsageLedgerEntry(
                user_id=event.user_id,
                conversation_id=event.conversation_id,
                message_id=event.message_id,
                model=event.model,
                input_tokens=event.input_tokens,
                output_tokens=event.output_tokens,
                cached=event.cached,
                battery_used=cost,
                balance_after=new_balance,
            ))
            await self.db.flush()
            await self._increment_daily_summary(event, cost, today)
            await self.db.commit()

        except InsufficientBalance:
            await self.db.rollback()
            raise
        except IntegrityError:
            # A concurrent request recorded the same message first
            await self.db.rollback()
            existing = await self._find_entry(event.message_id)
            if existing:
                try:
                    return self._replay(existing, event)
                finally:
                    await self.db.rollback()
            await self.db.rollback()
            logger.error(f"Integrity error tracking message {event.message_id}")
            raise StorageUnavailable()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Storage failure tracking message {event.message_id}: {e}")
            raise StorageUnavailable() from e

        logger.info(
            f"Tracked {event.model} for user {event.user_id}: "
            f"{event.input_tokens}+{event.output_tokens} tokens = {cost} BU, balance {new_balance}"
        )
        return UsageResult(battery_used=cost, new_balance=new_balance)

    async def get_today_usage(self, user_id: str, today: Optional[date] = None) -> int:
        result = await self.db.execute(
            select(DailyUsageSummary.total_battery_used).where(
                DailyUsageSummary.user_id == user_id,
                DailyUsageSummary.date == (today or self.clock()),
            )
        )
        return result.scalar_one_or_none() or 0

    async def get_user_usage_history(
        self, user_id: str, days: int = 7, today: Optional[date] = None
    ) -> AsyncIterator[DailyUsage]:
        """
        Yield usage for each of the trailing `days` calendar days, oldest first.

        Days without usage yield zeros. Each call runs a fresh query, so the
        sequence can be iterated again by calling this again.
        """
        if days <= 0:
            raise InvalidRequest("days must be positive")

        end = today or self.clock()
        start = end - timedelta(days=days - 1)

        result = await self.db.execute(
            select(DailyUsageSummary).where(
                DailyUsageSummary.user_id == user_id,
                DailyUsageSummary.date >= start,
                DailyUsageSummary.date <= end,
            ).execution_options(populate_existing=True)
        )
        summaries = {row.date: row for row in result.scalars()}

        result = await self.db.execute(
            select(DailyModelUsage).where(
                DailyModelUsage.user_id == user_id,
                DailyModelUsage.date >= start,
                DailyModelUsage.date <= end,
            ).execution_options(populate_existing=True)
        )
        models_by_day: Dict[date, List[DailyModelUsage]] = {}
        for row in result.scalars():
            models_by_day.setdefault(row.date, []).append(row)

        for offset in range(days):
            day = start + timedelta(days=offset)
            summary = summaries.get(day)
            top_models = sorted(models_by_day.get(day, []), key=lambda m: (-m.message_count, m.model))
            yield DailyUsage(
                date=day,
                total_battery_used=summary.total_battery_used if summary else 0,
                total_messages=summary.total_messages if summary else 0,
                models=[
                    {"model": m.model, "count": m.message_count}
                    for m in top_models[:TOP_MODELS_PER_DAY]
                ],
            )
