"""
Teto Duel — Discord Bot
=======================
Score challenges for osu! maps: post your best play on a map as a challenge,
let others answer it, and get a stat card comparing the two plays.

Setup:
  1. pip install -e .
  2. Set DISCORD_BOT_TOKEN in .env
  3. python teto_bot.py

Commands are prefixed with !teto (configurable via COMMAND_PREFIX).
"""

import json
import logging
from pathlib import Path
from typing import Optional

import discord
from discord.ext import commands

import config
from avatars import fetch_avatars
from card_renderer import Party, RenderContext, render_challenge, render_prototype
from challenge import ChallengeBoard, ChallengeError, resolve_response
from comparator import format_comparison_table
from scores import (InvalidScoreData, ScoreRecord, beatmap_link, difficulty_label,
                    extract_score_value, format_compact, is_valid_score)

logger = logging.getLogger(__name__)

# ── Score Database ───────────────────────────────────────────────────────────

class ScoreDB:
    """
    Player scores loaded from a JSON export of the stats API.

    Layout: {"players": {"<discord id>": {"username", "avatar_url", "scores": [...]}}}
    with each player's scores newest first.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._players: dict[int, dict] = {}
        self.reload()

    def reload(self):
        if not self.path.exists():
            logger.warning("Score file %s not found; starting empty", self.path)
            self._players = {}
            return
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        self._players = {int(pid): entry for pid, entry in data.get("players", {}).items()}

    def player(self, player_id: int) -> Optional[dict]:
        return self._players.get(player_id)

    def recent(self, player_id: int, n: int = 2) -> list[ScoreRecord]:
        entry = self._players.get(player_id) or {}
        return [ScoreRecord.from_api(s) for s in entry.get("scores", [])[:n]]

    def best_on_map(self, player_id: int, map_id: int) -> Optional[dict]:
        entry = self._players.get(player_id) or {}
        on_map = [s for s in entry.get("scores", [])
                  if isinstance(s.get("beatmap"), dict) and s["beatmap"].get("id") == map_id]
        if not on_map:
            return None
        return max(on_map, key=lambda s: extract_score_value(s.get("score")))

    def avatar_url(self, player_id: int) -> Optional[str]:
        return (self._players.get(player_id) or {}).get("avatar_url")

    @property
    def total_players(self) -> int:
        return len(self._players)


# ── Formatting helpers ───────────────────────────────────────────────────────

def format_map(record: ScoreRecord) -> str:
    beatmap = record.beatmap
    if beatmap is None:
        return "Unknown map"
    label = difficulty_label(beatmap.title or "Unknown Map", beatmap.difficulty_name, beatmap.artist)
    link = beatmap_link(record)
    return f"[{label}]({link})" if link else label


def format_result(outcome, state) -> str:
    verdict = outcome.verdict
    stats = f"({verdict.responder_wins}/5 key stats)"
    if outcome.responder_id == state.champion_id:
        if outcome.responder_won:
            return f"🏆 **{outcome.responder_name}** has improved the score! {stats}"
        return f"😅 **{outcome.responder_name}** has failed to improve the score."
    if outcome.responder_won:
        return f"🏆 **{outcome.responder_name}** takes the challenge {stats}!"
    if verdict.responder_wins == verdict.challenger_wins:
        return f"🤝 It's a tie — **{state.champion_name}** keeps the challenge."
    return (f"🛡️ **{state.champion_name}** defends the challenge "
            f"({verdict.responder_wins}/5 key stats for {outcome.responder_name}).")


def claim_champion(board: ChallengeBoard, outcome, map_id: int) -> Optional[str]:
    """Apply a winning response to the board; returns a warning if the board moved on."""
    try:
        board.replace_champion(outcome, map_id)
    except ChallengeError as e:
        logger.info("Champion not updated on map %s: %s", map_id, e)
        return f"⚠️ {e}"
    return None


# ── Discord Bot ──────────────────────────────────────────────────────────────

intents = discord.Intents.default()
intents.message_content = True

bot = commands.Bot(command_prefix=config.COMMAND_PREFIX, intents=intents,
                   help_command=None)

render_ctx = RenderContext(config.ASSETS_DIR, config.CARD_WIDTH, config.CARD_HEIGHT)
board = ChallengeBoard()


async def load_avatars(*player_ids: int) -> list[Optional[bytes]]:
    urls = [scores_db.avatar_url(pid) for pid in player_ids]
    return await fetch_avatars(urls, timeout=config.AVATAR_TIMEOUT, retries=config.AVATAR_RETRIES)


# ── Events ───────────────────────────────────────────────────────────────────

@bot.event
async def on_ready():
    logger.info("Logged in as %s (ID: %s)", bot.user, bot.user.id)
    logger.info("Loaded scores for %d players", scores_db.total_players)
    render_ctx.fonts.register()
    for guild in bot.guilds:
        for emoji in guild.emojis:
            name = emoji.name.lower()
            if name.startswith("rank_"):
                render_ctx.emoji.setdefault(name[5:].upper(), str(emoji))
    await bot.change_presence(activity=discord.Game(name="osu! challenges | !teto help"))


# ── Commands ─────────────────────────────────────────────────────────────────

@bot.command(name="help")
async def teto_help(ctx: commands.Context):
    p = config.COMMAND_PREFIX
    embed = discord.Embed(
        title="🥖 Teto Duel — Commands",
        color=0xe04f73,
        description="Challenge other players on your best osu! plays."
    )
    embed.add_field(name="⚔️ Challenges", inline=False, value=(
        f"**`{p}challenge <map id>`** — Post your best play on a map as a challenge\n"
        f"**`{p}respond <map id>`** — Answer a challenge with your best play\n"
        f"**`{p}close <map id>`** — Close a challenge you own"
    ))
    embed.add_field(name="📊 Info", inline=False, value=(
        f"**`{p}champion <map id>`** — Show the current champion of a map\n"
        f"**`{p}challenges`** — List active challenges\n"
        f"**`{p}card`** — Preview a stat card of your two latest plays"
    ))
    embed.set_footer(text="The responder needs 3 of 5 key stats: PP, accuracy, combo, score, misses.")
    await ctx.send(embed=embed)


@bot.command(name="card")
async def teto_card(ctx: commands.Context):
    recent = scores_db.recent(ctx.author.id, 2)
    if len(recent) < 2:
        return await ctx.send("⚠️ Need at least two recent plays to draw a card.")
    (avatar,) = await load_avatars(ctx.author.id)
    buf = await render_prototype(render_ctx, Party(ctx.author.display_name, avatar), recent)
    lines = "\n".join(format_compact(r, render_ctx.emoji) for r in recent)
    await ctx.send(f"Your two latest plays:\n{lines}", file=discord.File(buf, filename="card.png"))


@bot.command(name="challenge")
async def teto_challenge(ctx: commands.Context, map_id: int):
    raw = scores_db.best_on_map(ctx.author.id, map_id)
    if raw is None:
        return await ctx.send(f"⚠️ You have no play on map `{map_id}`.")
    if not is_valid_score(raw):
        return await ctx.send("⚠️ That play is missing its map or difficulty.")
    record = ScoreRecord.from_api(raw)
    state = board.open(map_id, record.beatmap.difficulty_name, ctx.author.id,
                       ctx.author.display_name, record)
    embed = discord.Embed(
        title="⚔️ New Challenge",
        description=f"**{state.champion_name}** challenges everyone on {format_map(record)}\n\n"
                    f"{format_compact(record, render_ctx.emoji)}",
        color=0xe04f73
    )
    embed.set_footer(text=f"Answer with {config.COMMAND_PREFIX}respond {map_id}")
    await ctx.send(embed=embed)


@bot.command(name="respond")
async def teto_respond(ctx: commands.Context, map_id: int):
    state = board.get(map_id)
    raw = scores_db.best_on_map(ctx.author.id, map_id)
    if raw is None:
        return await ctx.send(f"⚠️ You have no play on map `{map_id}`.")

    outcome = resolve_response(state, raw, ctx.author.id, ctx.author.display_name)
    champion_avatar, responder_avatar = await load_avatars(state.champion_id, ctx.author.id)
    buf = await render_challenge(
        render_ctx,
        Party(state.champion_name, champion_avatar),
        Party(outcome.responder_name, responder_avatar),
        state.champion_score, outcome.responder_score, outcome.verdict)

    note = claim_champion(board, outcome, map_id)

    table = format_comparison_table(state.champion_score, outcome.responder_score, outcome.verdict)
    await ctx.send(f"{format_result(outcome, state)}\n{table}",
                   file=discord.File(buf, filename="challenge.png"))
    if note:
        await ctx.send(note)


@bot.command(name="champion")
async def teto_champion(ctx: commands.Context, map_id: int):
    state = board.get(map_id)
    embed = discord.Embed(
        title=f"👑 Champion of {format_map(state.champion_score)}",
        description=f"**{state.champion_name}**\n{format_compact(state.champion_score, render_ctx.emoji)}",
        color=0xf1c40f
    )
    await ctx.send(embed=embed)


@bot.command(name="challenges")
async def teto_challenges(ctx: commands.Context):
    active = board.active()
    if not active:
        return await ctx.send("No active challenges. Start one with "
                              f"`{config.COMMAND_PREFIX}challenge <map id>`.")
    lines = [f"`{s.map_id}` [{s.difficulty}] — 👑 **{s.champion_name}**" for s in active]
    await ctx.send(embed=discord.Embed(title="⚔️ Active Challenges",
                                       description="\n".join(lines), color=0x333333))


@bot.command(name="close")
async def teto_close(ctx: commands.Context, map_id: int):
    state = board.close(map_id, ctx.author.id)
    await ctx.send(f"🛑 Challenge on map `{map_id}` closed. Final champion: **{state.champion_name}**")


# ── Error handling ───────────────────────────────────────────────────────────

@bot.event
async def on_command_error(ctx: commands.Context, error):
    if isinstance(error, commands.CommandNotFound):
        return  # ignore unknown commands
    if isinstance(error, commands.CommandInvokeError):
        error = error.original
    if isinstance(error, (ChallengeError, InvalidScoreData)):
        return await ctx.send(f"⚠️ {error}")
    if isinstance(error, (commands.BadArgument, commands.MissingRequiredArgument)):
        return await ctx.send(f"⚠️ Invalid argument. Check `{config.COMMAND_PREFIX}help` for usage.")
    # raise other errors
    raise error


# ── Run ──────────────────────────────────────────────────────────────────────

scores_db = ScoreDB(config.SCORES_FILE)

if __name__ == "__main__":
    if not config.TOKEN:
        print("=" * 60)
        print("ERROR: Set your bot token!")
        print("  export DISCORD_BOT_TOKEN='your-token-here'  (or put it in .env)")
        print("=" * 60)
    else:
        bot.run(config.TOKEN, log_level=getattr(logging, config.LOG_LEVEL, logging.INFO),
                root_logger=True)
