from __future__ import annotations

import logging

import discord
from discord.ext import commands
from dotenv import load_dotenv

from .commands import register_commands, resolve_interaction_user
from .config import Config, load_config
from .db import Database
from .operations import TimesheetOperations
from .tracker import TimesheetTracker


class TimesheetBot(commands.Bot):
    def __init__(self, config: Config, db: Database) -> None:
        intents = discord.Intents.none()
        intents.guilds = True

        super().__init__(command_prefix="!", intents=intents)

        self.config = config
        self.db = db
        self.tracker = TimesheetTracker(store=db)
        self.operations = TimesheetOperations(self.tracker, resolve_interaction_user)

        self.logger = logging.getLogger("timesheet-bot")

    async def setup_hook(self) -> None:
        register_commands(self)
        await self.tree.sync(guild=discord.Object(id=self.config.guild_id))

    async def on_ready(self) -> None:
        self.logger.info("Connected as %s (%s)", self.user, self.user.id if self.user else "unknown")
        if self.get_guild(self.config.guild_id) is None:
            self.logger.error("Configured guild %s not found", self.config.guild_id)
            await self.close()

    async def close(self) -> None:
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

    bot = TimesheetBot(config=config, db=db)
    bot.run(config.discord_token)


if __name__ == "__main__":
    main()
