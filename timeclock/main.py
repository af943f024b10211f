from __future__ import annotations

import logging

import discord
from discord.ext import commands, tasks
from dotenv import load_dotenv

from .commands import register_commands
from .config import Config, load_config
from .crypto import FernetCipher
from .db import Database
from .formatting import format_time
from .history import HistoryLedger
from .models import SessionState
from .reporter import Reporter
from .secure_store import SecureStateStore
from .tracker import TimeTracker


class TimeClockBot(commands.Bot):
    def __init__(self, config: Config, db: Database) -> None:
        intents = discord.Intents.none()
        intents.guilds = True

        super().__init__(command_prefix="!", intents=intents)

        self.config = config
        self.db = db
        self.logger = logging.getLogger("timeclock-bot")

        store = SecureStateStore(db, FernetCipher.from_secret(config.secret))
        ledger = HistoryLedger(store, capacity=config.history_capacity)
        self.tracker = TimeTracker(store=store, ledger=ledger, tz=config.timezone)
        self.reporter = Reporter(ledger)

    async def setup_hook(self) -> None:
        # Register slash commands during startup and begin the presence ticker.
        register_commands(self)
        await self.tree.sync(guild=discord.Object(id=self.config.guild_id))
        self.presence_loop.start()

    async def on_ready(self) -> None:
        self.logger.info("Connected as %s (%s)", self.user, self.user.id if self.user else "unknown")
        self.logger.info("Session state on start: %s", self.tracker.state.value)

    async def refresh_presence(self) -> None:
        # Presentation only: reads elapsed totals, never writes session state.
        state = self.tracker.state
        if state is SessionState.CHECKED_OUT:
            await self.change_presence(activity=None)
            return

        work, _ = self.tracker.elapsed()
        label = "On break" if state is SessionState.ON_BREAK else "Working"
        await self.change_presence(activity=discord.Game(name=f"{label} {format_time(work)}"))

    @tasks.loop(seconds=60)
    async def presence_loop(self) -> None:
        try:
            await self.refresh_presence()
        except discord.HTTPException:  # pragma: no cover - runtime safety
            self.logger.exception("Failed to refresh presence")

    @presence_loop.before_loop
    async def before_presence_loop(self) -> None:
        await self.wait_until_ready()

    async def close(self) -> None:
        if self.presence_loop.is_running():
            self.presence_loop.cancel()
        self.db.close()
        await super().close()


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )


def main() -> None:
    load_dotenv()
    configure_logging()

    config = load_config()
    db = Database(config.db_path)
    db.initialize()

    bot = TimeClockBot(config=config, db=db)
    bot.run(config.discord_token)


if __name__ == "__main__":
    main()
