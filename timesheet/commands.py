from __future__ import annotations

import discord
from discord import app_commands

from .errors import TimesheetError
from .reporter import build_work_list, describe_work

MS_PER_MINUTE = 60_000


def resolve_interaction_user(interaction) -> str | None:
    """Identity resolver for the operation layer: the Discord user id, if any."""
    user = getattr(interaction, "user", None)
    if user is None:
        return None
    return str(user.id)


def register_commands(bot):
    """Register all slash commands on the bot. Called once during setup."""
    guild_scope = discord.Object(id=bot.config.guild_id)

    async def reply(interaction, render):
        # Every timesheet failure is the caller's to see; anything else is a bug.
        try:
            content = render()
        except TimesheetError as exc:
            content = str(exc)
        except Exception as exc:
            bot.logger.exception("Timesheet command failed")
            content = f"Something went wrong: `{exc}`"
        await interaction.response.send_message(content, ephemeral=True)

    async def respond(interaction, action, done):
        def render():
            record = bot.operations.get_work(interaction, action())
            return f"{done}: {describe_work(record, bot.tracker.current_total(record))}"

        await reply(interaction, render)

    @bot.tree.command(name="start", description="Start working on an issue", guild=guild_scope)
    @app_commands.describe(issue="Issue URL or org/repo#number")
    async def start(interaction, issue: str):
        await respond(interaction, lambda: bot.operations.start_work(interaction, issue), "Started")

    @bot.tree.command(name="pause", description="Pause the clock on a work session", guild=guild_scope)
    async def pause(interaction, work_id: str):
        await respond(interaction, lambda: bot.operations.pause_work(interaction, work_id), "Paused")

    @bot.tree.command(name="continue", description="Resume a paused work session", guild=guild_scope)
    async def continue_(interaction, work_id: str):
        await respond(interaction, lambda: bot.operations.continue_work(interaction, work_id), "Continued")

    @bot.tree.command(name="edit", description="Overwrite the time spent on a work session", guild=guild_scope)
    @app_commands.describe(minutes="New total time in minutes")
    async def edit(interaction, work_id: str, minutes: app_commands.Range[int, 0]):
        await respond(
            interaction,
            lambda: bot.operations.edit_work(interaction, work_id, minutes * MS_PER_MINUTE),
            "Edited",
        )

    @bot.tree.command(name="finish", description="Finish a running work session", guild=guild_scope)
    async def finish(interaction, work_id: str):
        await respond(interaction, lambda: bot.operations.finish_work(interaction, work_id), "Finished")

    @bot.tree.command(name="delete", description="Remove a work session", guild=guild_scope)
    async def delete(interaction, work_id: str):
        def render():
            bot.operations.delete_work(interaction, work_id)
            return f"Deleted `{work_id}`."

        await reply(interaction, render)

    @bot.tree.command(name="mywork", description="List your tracked work sessions", guild=guild_scope)
    async def mywork(interaction):
        def render():
            records = bot.operations.list_work(interaction)
            totals = {record.id: bot.tracker.current_total(record) for record in records}
            return build_work_list(records, totals)

        await reply(interaction, render)
