from __future__ import annotations

import io
from datetime import date, timedelta
from typing import Optional

import discord
from discord import app_commands

from .errors import StateTransitionError
from .formatting import efficiency_from, format_time, to_minutes, validate_break_duration
from .models import SessionState
from .reporter import WORK_RATINGS, week_start_for


def describe_state(bot) -> str:
    snapshot = bot.tracker.get_current_state()
    if snapshot.state is SessionState.CHECKED_OUT:
        return "Status: checked out"

    work, brk = bot.tracker.elapsed()
    since = "-"
    if snapshot.check_in_time is not None:
        since = snapshot.check_in_time.astimezone(bot.config.timezone).strftime("%H:%M")
    lines = [
        f"Status: {'on break' if snapshot.state is SessionState.ON_BREAK else 'checked in'} (since {since})",
        f"Worked so far: `{format_time(work)}`",
        f"Breaks so far: `{format_time(brk)}` across {len(snapshot.breaks)} closed break(s)",
    ]
    if snapshot.current_break is not None and snapshot.current_break.reason:
        lines.append(f"Current break: {snapshot.current_break.reason}")
    return "\n".join(lines)


def register_commands(bot) -> None:
    """Register all slash commands on the bot. Called once during setup."""
    guild_scope = discord.Object(id=bot.config.guild_id)

    async def ensure_owner(interaction: discord.Interaction) -> bool:
        # Single-client scope: one tracked person per bot instance.
        if interaction.user.id != bot.config.owner_user_id:
            await interaction.response.send_message("This time clock belongs to someone else.", ephemeral=True)
            return False
        return True

    async def reply_transition_error(interaction: discord.Interaction, exc: StateTransitionError) -> None:
        bot.logger.info("Rejected %s in state %s", type(exc).__name__, exc.state.value)
        await interaction.response.send_message(f"{exc}.", ephemeral=True)

    @bot.tree.command(name="check-in", description="Start today's working session", guild=guild_scope)
    async def check_in(interaction: discord.Interaction):
        if not await ensure_owner(interaction):
            return
        try:
            snapshot = bot.tracker.check_in()
        except StateTransitionError as exc:
            await reply_transition_error(interaction, exc)
            return

        local = snapshot.check_in_time.astimezone(bot.config.timezone)
        await interaction.response.send_message(f"Checked in at `{local:%H:%M:%S}`.", ephemeral=True)
        await bot.refresh_presence()

    @bot.tree.command(name="break-start", description="Start a break", guild=guild_scope)
    @app_commands.describe(reason="Optional reason for the break")
    async def break_start(interaction: discord.Interaction, reason: str | None = None):
        if not await ensure_owner(interaction):
            return
        try:
            opened = bot.tracker.start_break(reason)
        except StateTransitionError as exc:
            await reply_transition_error(interaction, exc)
            return

        local = opened.start_time.astimezone(bot.config.timezone)
        await interaction.response.send_message(f"Break started at `{local:%H:%M:%S}`.", ephemeral=True)
        await bot.refresh_presence()

    @bot.tree.command(name="break-end", description="End the current break", guild=guild_scope)
    async def break_end(interaction: discord.Interaction):
        if not await ensure_owner(interaction):
            return
        try:
            closed = bot.tracker.end_break()
        except StateTransitionError as exc:
            await reply_transition_error(interaction, exc)
            return

        lines = [f"Break duration: `{format_time(closed.duration)}`"]
        total = bot.tracker.get_current_state().total_break_time
        lines.append(f"Total breaks today: `{format_time(total)}`")
        if not validate_break_duration(to_minutes(closed.duration), bot.config.max_break_minutes):
            lines.append(f"Warning: this break exceeded the {bot.config.max_break_minutes} minute limit.")
        await interaction.response.send_message("\n".join(lines), ephemeral=True)
        await bot.refresh_presence()

    @bot.tree.command(name="check-out", description="Finish today's session", guild=guild_scope)
    @app_commands.describe(notes="Optional notes stored with the day")
    async def check_out(interaction: discord.Interaction, notes: str | None = None):
        if not await ensure_owner(interaction):
            return

        work, brk = bot.tracker.elapsed()
        try:
            record = bot.tracker.check_out(efficiency=efficiency_from(work, brk), notes=notes)
        except StateTransitionError as exc:
            await reply_transition_error(interaction, exc)
            return

        lines = [
            f"Checked out for `{record.date}`.",
            f"Total time worked: `{format_time(record.total_work_time)}`",
            f"Total breaks: `{format_time(record.total_break_time)}`",
            f"Efficiency: `{record.efficiency}%`",
        ]
        await interaction.response.send_message("\n".join(lines), ephemeral=True)
        await bot.refresh_presence()

    @bot.tree.command(name="status", description="Show the current session", guild=guild_scope)
    async def status(interaction: discord.Interaction):
        if not await ensure_owner(interaction):
            return
        await interaction.response.send_message(describe_state(bot), ephemeral=True)

    @bot.tree.command(name="history", description="Show recent days and attach a CSV export", guild=guild_scope)
    @app_commands.describe(
        days="Only include the last N days",
        rating="Only include days with this work rating",
        sort="Sort order (newest first by default)",
    )
    @app_commands.choices(
        rating=[app_commands.Choice(name=label, value=label) for label in WORK_RATINGS],
        sort=[
            app_commands.Choice(name="Newest first", value="date"),
            app_commands.Choice(name="Most efficient first", value="efficiency"),
            app_commands.Choice(name="Longest work first", value="work"),
        ],
    )
    async def history(
        interaction: discord.Interaction,
        days: Optional[app_commands.Range[int, 1, 365]] = None,
        rating: Optional[app_commands.Choice[str]] = None,
        sort: Optional[app_commands.Choice[str]] = None,
    ):
        if not await ensure_owner(interaction):
            return

        since = None
        if days is not None:
            since = date.fromisoformat(bot.tracker.local_day_key()) - timedelta(days=days - 1)
        records = bot.reporter.select_history(
            since=since,
            rating=rating.value if rating else None,
            sort_by=sort.value if sort else "date",
        )
        content = bot.reporter.build_history_content(records)
        if not records:
            await interaction.response.send_message(content, ephemeral=True)
            return

        today = bot.tracker.local_day_key()
        export = discord.File(
            io.BytesIO(bot.reporter.export_csv(records).encode("utf-8")),
            filename=f"time-tracking-report-{today}.csv",
        )
        await interaction.response.send_message(content, file=export, ephemeral=True)

    @bot.tree.command(name="weekly-report", description="Summarize a week of finalized days", guild=guild_scope)
    @app_commands.describe(week_start="First day of the week, YYYY-MM-DD (defaults to this Monday)")
    async def weekly_report(interaction: discord.Interaction, week_start: str | None = None):
        if not await ensure_owner(interaction):
            return

        if week_start:
            try:
                start = date.fromisoformat(week_start)
            except ValueError:
                await interaction.response.send_message("week_start must look like YYYY-MM-DD.", ephemeral=True)
                return
        else:
            start = week_start_for(date.fromisoformat(bot.tracker.local_day_key()))

        report = bot.reporter.generate_weekly_report(start)
        await interaction.response.send_message(bot.reporter.build_report_content(report), ephemeral=True)

    @bot.tree.command(name="clear-data", description="Erase the current session and all history", guild=guild_scope)
    async def clear_data(interaction: discord.Interaction):
        if not await ensure_owner(interaction):
            return
        bot.tracker.clear_data()
        await interaction.response.send_message("Time tracking data cleared.", ephemeral=True)
        await bot.refresh_presence()
