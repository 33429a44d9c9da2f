#!/usr/bin/env python
# manage_battery.py - Maintenance commands for battery accounts (daily reset from cron, grants)
import argparse
import asyncio
import logging
import sys
from datetime import date

from app.database import SessionLocal, init_db
from app.services.battery_ledger import BatteryLedger
from app.services.exceptions import BatteryError

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("battery")


async def reset_daily(for_date: date = None) -> int:
    """Credit daily allowances for the given UTC day (today by default)"""
    await init_db()
    async with SessionLocal() as db:
        return await BatteryLedger(db).reset_daily_allowances(for_date)


async def grant_plan(user_id: str, plan_name: str) -> None:
    await init_db()
    async with SessionLocal() as db:
        account = await BatteryLedger(db).grant_plan(user_id, plan_name)
        logger.info(
            f"User {user_id} now has {account.total_balance} BU "
            f"with a daily allowance of {account.daily_allowance} BU"
        )


async def top_up(user_id: str, units: int) -> None:
    await init_db()
    async with SessionLocal() as db:
        balance = await BatteryLedger(db).top_up(user_id, units)
        logger.info(f"User {user_id} now has {balance} BU")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Battery account maintenance")
    commands = parser.add_subparsers(dest="command", required=True)

    reset = commands.add_parser("reset-daily", help="Credit daily allowances (run once per day)")
    reset.add_argument("--date", type=date.fromisoformat, help="UTC date to reset for, YYYY-MM-DD")

    plan = commands.add_parser("grant-plan", help="Apply a subscription plan to a user")
    plan.add_argument("user_id")
    plan.add_argument("plan", help="Plan name: starter, daily, power, ultimate")

    topup = commands.add_parser("top-up", help="Add purchased battery units to a user")
    topup.add_argument("user_id")
    topup.add_argument("units", type=int)

    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)
    try:
        if args.command == "reset-daily":
            credited = asyncio.run(reset_daily(args.date))
            logger.info(f"Credited {credited} accounts")
        elif args.command == "grant-plan":
            asyncio.run(grant_plan(args.user_id, args.plan))
        elif args.command == "top-up":
            asyncio.run(top_up(args.user_id, args.units))
    except BatteryError as e:
        logger.error(f"{args.command} failed: {e.detail}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
