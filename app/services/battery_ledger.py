# app/services/battery_ledger.py
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import insert_for
from app.models.battery import BatteryAccount, BatteryTransaction
from app.models.enums import TransactionType
from app.services.exceptions import InsufficientBalance, InvalidRequest
from app.services.plans import get_plan

logger = logging.getLogger(__name__)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


class BatteryLedger:
    """
    Source of truth for battery balances.

    Balance changes are single conditional UPDATE statements so concurrent
    requests for the same user serialize in the database. get_account, debit
    and credit only flush; the caller decides when the transaction commits.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _select_account(self, user_id: str) -> Optional[BatteryAccount]:
        result = await self.db.execute(
            select(BatteryAccount)
            .where(BatteryAccount.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_account(self, user_id: str) -> BatteryAccount:
        """
        Get a user's battery account, creating an empty one if missing.

        Creation is "insert, ignore on conflict" so two first requests from
        the same user cannot fail or produce two rows.
        """
        account = await self._select_account(user_id)
        if account:
            return account

        await self.db.execute(
            insert_for(self.db, BatteryAccount)
            .values(user_id=user_id, total_balance=0, daily_allowance=0, last_daily_reset=utc_today())
            .on_conflict_do_nothing(index_elements=["user_id"])
        )
        logger.info(f"Created battery account for user {user_id}")
        return await self._select_account(user_id)

    async def get_balance(self, user_id: str) -> int:
        result = await self.db.execute(
            select(BatteryAccount.total_balance).where(BatteryAccount.user_id == user_id)
        )
        return result.scalar_one_or_none() or 0

    async def _record_transaction(
        self,
        user_id: str,
        tx_type: TransactionType,
        amount: int,
        balance_after: int,
        description: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.db.add(BatteryTransaction(
            user_id=user_id,
            type=tx_type.value,
            amount=amount,
            balance_after=balance_after,
            description=description,
            details=details,
        ))
        await self.db.flush()

    async def debit(
        self,
        user_id: str,
        amount: int,
        description: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Reduce the balance by amount and return the new balance.

        Raises:
            InsufficientBalance: amount exceeds the balance at the time of the
                update; the balance is left unchanged
        """
        if amount < 0:
            raise ValueError("Debit amount must be >= 0")

        result = await self.db.execute(
            update(BatteryAccount)
            .where(BatteryAccount.user_id == user_id, BatteryAccount.total_balance >= amount)
            .values(total_balance=BatteryAccount.total_balance - amount)
            .returning(BatteryAccount.total_balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = result.scalar_one_or_none()
        if new_balance is None:
            available = await self.get_balance(user_id)
            logger.warning(f"Debit of {amount} BU rejected for user {user_id}: balance {available}")
            raise InsufficientBalance(required=amount, available=available)

        await self._record_transaction(
            user_id, TransactionType.USAGE, -amount, new_balance, description, details
        )
        logger.info(f"Debited {amount} BU from user {user_id}, balance now {new_balance}")
        return new_balance

    async def credit(
        self,
        user_id: str,
        amount: int,
        tx_type: TransactionType = TransactionType.ADJUSTMENT,
        description: Optional[str] = None,
    ) -> int:
        """Increase the balance by amount and return the new balance"""
        if amount < 0:
            raise ValueError("Credit amount must be >= 0")

        await self.get_account(user_id)
        result = await self.db.execute(
            update(BatteryAccount)
            .where(BatteryAccount.user_id == user_id)
            .values(total_balance=BatteryAccount.total_balance + amount)
            .returning(BatteryAccount.total_balance)
            .execution_options(synchronize_session=False)
        )
        new_balance = result.scalar_one()
        await self._record_transaction(user_id, tx_type, amount, new_balance, description)
        logger.info(f"Credited {amount} BU to user {user_id} ({tx_type.value}), balance now {new_balance}")
        return new_balance

    async def top_up(self, user_id: str, units: int) -> int:
        """Grant purchased battery units and commit"""
        if units <= 0:
            raise InvalidRequest("Top-up units must be positive")
        new_balance = await self.credit(
            user_id, units, TransactionType.TOPUP, description=f"Battery top-up: {units} BU"
        )
        await self.db.commit()
        return new_balance

    async def grant_plan(self, user_id: str, plan_name: str) -> BatteryAccount:
        """
        Apply a subscription plan: credit its battery in bulk and set the
        daily allowance. Commits.
        """
        plan = get_plan(plan_name)
        if not plan:
            raise InvalidRequest(f"Unknown plan '{plan_name}'")

        await self.credit(
            user_id, plan.total_battery, TransactionType.SUBSCRIPTION,
            description=f"{plan.name} plan battery",
        )
        await self.db.execute(
            update(BatteryAccount)
            .where(BatteryAccount.user_id == user_id)
            .values(daily_allowance=plan.daily_battery, last_daily_reset=utc_today())
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        logger.info(f"Granted {plan.name} plan to user {user_id}")
        return await self._select_account(user_id)

    async def reset_daily_allowances(self, today: Optional[date] = None) -> int:
        """
        Credit each account's daily allowance once per UTC day. Commits.

        The per-account update is conditional on last_daily_reset so running
        the reset twice on the same day credits nothing the second time.
        Returns the number of accounts credited.
        """
        today = today or utc_today()
        not_reset_today = or_(
            BatteryAccount.last_daily_reset.is_(None),
            BatteryAccount.last_daily_reset != today,
        )

        result = await self.db.execute(
            select(BatteryAccount.user_id)
            .where(BatteryAccount.daily_allowance > 0, not_reset_today)
        )
        user_ids = list(result.scalars())

        credited = 0
        for user_id in user_ids:
            result = await self.db.execute(
                update(BatteryAccount)
                .where(BatteryAccount.user_id == user_id, BatteryAccount.daily_allowance > 0, not_reset_today)
                .values(
                    total_balance=BatteryAccount.total_balance + BatteryAccount.daily_allowance,
                    last_daily_reset=today,
                )
                .returning(BatteryAccount.total_balance, BatteryAccount.daily_allowance)
                .execution_options(synchronize_session=False)
            )
            row = result.first()
            if row is None:
                continue
            await self._record_transaction(
                user_id, TransactionType.DAILY, row.daily_allowance, row.total_balance,
                description="Daily battery allowance",
            )
            credited += 1

        await self.db.commit()
        logger.info(f"Daily allowance reset for {today.isoformat()}: {credited} accounts credited")
        return credited

    async def list_transactions(self, user_id: str, limit: int = 50) -> List[BatteryTransaction]:
        result = await self.db.execute(
            select(BatteryTransaction)
            .where(BatteryTransaction.user_id == user_id)
            .order_by(BatteryTransaction.created_at.desc(), BatteryTransaction.id)
            .limit(limit)
        )
        return list(result.scalars())
