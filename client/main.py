#!/usr/bin/env python
# Main entry point for the battery monitor client
import asyncio
import logging
import signal
import sys

import jwt

from client.api.battery_service import BatteryService
from client.battery.store import BatteryStore
from client.battery.sync import BatterySync
from client.battery.timers import AsyncioScheduler
from client.ui.console import ConsoleNotifier, console, show_battery, show_error
from client.utils.config import Config

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def token_subject(token: str) -> str:
    """Read the user id from the token; the server does the real verification"""
    claims = jwt.decode(token, options={"verify_signature": False})
    return claims["sub"]


def install_signal_handlers(loop: asyncio.AbstractEventLoop, sync: BatterySync, stop_event: asyncio.Event):
    """SIGINT/SIGTERM stop the monitor; SIGHUP forces a refresh as after a reconnect"""
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop_event.set)
    loop.add_signal_handler(signal.SIGHUP, lambda: loop.create_task(sync.on_reconnect()))


async def run(config: Config):
    service = BatteryService(config.api_url, config.access_token)
    store = BatteryStore()
    sync = BatterySync(
        service,
        store,
        AsyncioScheduler(),
        notifier=ConsoleNotifier(),
        resync_interval=config.resync_interval,
        post_usage_delay=config.post_usage_delay,
    )
    unsubscribe = store.subscribe(show_battery)

    stop_event = asyncio.Event()
    install_signal_handlers(asyncio.get_running_loop(), sync, stop_event)

    try:
        await sync.start(token_subject(config.access_token))
        if store.get() is None:
            show_error("Could not load battery status; retrying in the background")
        await stop_event.wait()
    finally:
        unsubscribe()
        await sync.stop()
        console.print("\n[yellow]Shutting down...[/yellow]")


def main(argv=None) -> int:
    config = Config().load_config()
    config.parse_args(argv)
    if not config.access_token:
        show_error("An access token is required (--token or access_token in the config file)")
        return 1
    try:
        token_subject(config.access_token)
    except (jwt.InvalidTokenError, KeyError):
        show_error("The access token has no subject")
        return 1

    asyncio.run(run(config))
    return 0


if __name__ == "__main__":
    sys.exit(main())
