"""
card_renderer.py — Draws the challenge stat card.

Two calling modes:
  1. Prototype:  the same player on both sides (preview of two recent plays)
  2. Challenge:  champion on the left, responder on the right, with the
                 winning bar on each row drawn thicker, the loser's avatar
                 shaded and a decoration over the winner.

Assets (all optional, looked up under RenderContext.assets_dir):
  backgrounds/teto_bg.png          card background (falls back to a flat colour)
  pfp/no_pfp.png                   avatar used when a player has none
  decorations/teto_l_cropped.png   drawn over the left avatar when it wins
  decorations/teto_r_cropped.png   drawn over the right avatar when it wins
  fonts/*.ttf|otf|woff             font candidates
A missing or broken asset is logged and skipped; it never fails the card.
"""

from __future__ import annotations

import asyncio
import io
import logging
import os
import sys
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence, Union

from PIL import Image, ImageChops, ImageDraw, ImageFont, ImageOps, UnidentifiedImageError

from card_layout import CardLayout, RowMetrics, calculate_stat_scale
from comparator import ComparisonVerdict, Winner
from scores import STAT_ROWS, ScoreRecord

logger = logging.getLogger(__name__)

# ── Font Setup ───────────────────────────────────────────────────────────────

FONT_FAMILY = "CardFont"
GENERIC_FAMILY = "sans-serif"
FONT_SUFFIXES = (".ttf", ".otf", ".woff", ".woff2")

_SYSTEM_FONTS = {
    "win32": ["arial.ttf", "Arial.ttf"],
    "darwin": ["/Library/Fonts/Arial.ttf",
               "~/Library/Fonts/Arial.ttf",
               "/System/Library/Fonts/Helvetica.ttc"],
    "linux": ["/usr/share/fonts/truetype/liberation/LiberationSans-Regular.ttf",
              "/usr/share/fonts/liberation/LiberationSans-Regular.ttf",
              "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
              "/usr/share/fonts/dejavu/DejaVuSans.ttf",
              "/usr/share/fonts/truetype/noto/NotoSans-Regular.ttf"],
}


def _system_font_candidates() -> list[Path]:
    if sys.platform == "win32":
        root = os.environ.get("SYSTEMROOT") or os.environ.get("WINDIR") or "C:/Windows"
        return [Path(root) / "Fonts" / name for name in _SYSTEM_FONTS["win32"]]
    names = _SYSTEM_FONTS["darwin" if sys.platform == "darwin" else "linux"]
    return [Path(os.path.expanduser(name)) for name in names]


class FontRegistrar:
    """
    Finds one font file for all card text and hands out sized faces from it.

    register() walks the candidates once: font.ttf / font.otf next to this
    module, then everything in font_dir, then the usual system fonts. The
    first file Pillow can open becomes FONT_FAMILY. If nothing opens, text
    is drawn with Pillow's default face instead.
    """

    def __init__(self, font_dir: Optional[Path] = None,
                 candidates: Optional[Sequence[Path]] = None):
        self.font_dir = Path(font_dir) if font_dir else None
        self._explicit = list(candidates) if candidates is not None else None
        self._registered = False
        self.path: Optional[Path] = None
        self.family = GENERIC_FAMILY
        self._faces: dict[int, ImageFont.ImageFont] = {}

    def candidates(self) -> list[Path]:
        if self._explicit is not None:
            return list(self._explicit)
        here = Path(__file__).parent
        found = [here / name for name in ("font.otf", "font.ttf", "Font.otf", "Font.ttf")]
        if self.font_dir and self.font_dir.is_dir():
            try:
                found.extend(sorted(p for p in self.font_dir.iterdir()
                                    if p.suffix.lower() in FONT_SUFFIXES))
            except OSError as e:
                logger.warning("[card] Can't list font directory %s: %s", self.font_dir, e)
        found.extend(_system_font_candidates())
        return found

    @property
    def registered(self) -> bool:
        return self._registered

    def register(self) -> bool:
        """Pick the font once. Returns True if a real font file is in use."""
        if self._registered:
            return self.path is not None
        for candidate in self.candidates():
            if not candidate.is_file():
                continue
            try:
                ImageFont.truetype(str(candidate), 12)
            except (OSError, ValueError) as e:
                logger.warning("[card] Failed to register font from %s: %s", candidate, e)
                continue
            self.path = candidate
            self.family = FONT_FAMILY
            logger.info("[card] Using font: %s", candidate)
            break
        else:
            logger.warning("[card] No font registered — card text falls back to Pillow's "
                           "default face. Add a .ttf to assets/card/fonts/")
        self._registered = True
        return self.path is not None

    def font(self, size: int) -> ImageFont.ImageFont:
        self.register()
        size = max(1, int(size))
        face = self._faces.get(size)
        if face is None:
            face = self._load(size)
            self._faces[size] = face
        return face

    def _load(self, size: int):
        if self.path is not None:
            try:
                return ImageFont.truetype(str(self.path), size)
            except (OSError, ValueError) as e:
                logger.warning("[card] Font %s failed at size %d: %s", self.path, size, e)
        try:
            return ImageFont.load_default(size=size)
        except TypeError:
            return ImageFont.load_default()


# ── Design Constants ─────────────────────────────────────────────────────────

FALLBACK_BG = (26, 26, 26)
AVATAR_BORDER_COLOR = (166, 196, 162)
LOSER_MASK = (25, 23, 23, 209)
NAME_FILL = (255, 255, 255)
NAME_OUTLINE = (0, 0, 0)
LABEL_FILL = (174, 231, 144)
LABEL_OUTLINE = (45, 45, 45)
LEFT_COLOR = (175, 241, 238)
RIGHT_COLOR = (241, 79, 198)

WINNER_LINE_MULTIPLIER = 1.6
DECORATION_RATIO = 0.75
MODS_MAX_CHARS = 12
MASK_SUPERSAMPLE = 4


# ── Render context & requests ────────────────────────────────────────────────

class Side(Enum):
    LEFT = "left"
    RIGHT = "right"

    @property
    def other(self) -> "Side":
        return Side.RIGHT if self is Side.LEFT else Side.LEFT

    @classmethod
    def of(cls, winner: Winner) -> Optional["Side"]:
        """The challenger is always drawn on the left."""
        if winner is Winner.CHALLENGER:
            return cls.LEFT
        if winner is Winner.RESPONDER:
            return cls.RIGHT
        return None


@dataclass
class RenderContext:
    """Created once at start-up and passed to every render."""

    assets_dir: Path
    width: int = 2000
    height: int = 2480
    fonts: Optional[FontRegistrar] = None
    emoji: dict[str, str] = field(default_factory=dict)

    def __post_init__(self):
        self.assets_dir = Path(self.assets_dir)
        if self.fonts is None:
            self.fonts = FontRegistrar(self.assets_dir / "fonts")
        self.layout = CardLayout.for_canvas(self.width, self.height)

    @property
    def background_path(self) -> Path:
        return self.assets_dir / "backgrounds" / "teto_bg.png"

    @property
    def placeholder_path(self) -> Path:
        return self.assets_dir / "pfp" / "no_pfp.png"

    def decoration_path(self, side: Side) -> Path:
        name = "teto_l_cropped.png" if side is Side.LEFT else "teto_r_cropped.png"
        return self.assets_dir / "decorations" / name


@dataclass(frozen=True)
class Party:
    name: str = ""
    avatar: Optional[bytes] = None


@dataclass(frozen=True)
class CardSpec:
    left: Party
    right: Party
    scores: Optional[tuple[ScoreRecord, ScoreRecord]] = None
    winners: tuple[Winner, ...] = ()
    loser: Optional[Side] = None

    @property
    def winner(self) -> Optional[Side]:
        return self.loser.other if self.loser else None


# ── Image loading ────────────────────────────────────────────────────────────

def _load_image(source: Union[bytes, Path, None], what: str) -> Optional[Image.Image]:
    """Decode an image from bytes or a path. Returns None (and logs) on any failure."""
    if not source:
        return None
    if isinstance(source, Path) and not source.is_file():
        return None
    try:
        fp = io.BytesIO(source) if isinstance(source, (bytes, bytearray)) else source
        with Image.open(fp) as im:
            im.load()
            return im.convert("RGBA")
    except (OSError, UnidentifiedImageError, ValueError, Image.DecompressionBombError) as e:
        logger.warning("[card] Failed to load %s: %s", what, e)
        return None


def _load_avatar(ctx: RenderContext, avatar: Optional[bytes]) -> Optional[Image.Image]:
    image = _load_image(avatar, "avatar")
    if image is None:
        image = _load_image(ctx.placeholder_path, "placeholder avatar")
    return image


# ── Drawing Primitives ───────────────────────────────────────────────────────

def _is_truetype(font) -> bool:
    return isinstance(font, ImageFont.FreeTypeFont)


def _draw_text(draw: ImageDraw.ImageDraw, xy, text: str, font, fill,
               anchor: str = "lt", stroke_width: int = 0, stroke_fill=None):
    """
    Draw text positioned by a two-letter anchor: horizontal l/m/r, vertical t/m/b.
    Offsets are computed from the text bbox so bitmap fallback fonts work too.
    """
    if not text:
        return
    stroke = stroke_width if _is_truetype(font) else 0
    x0, y0, x1, y1 = draw.textbbox((0, 0), text, font=font, stroke_width=stroke)
    h, v = anchor[0], anchor[1]
    x = xy[0] - {"l": x0, "m": (x0 + x1) / 2, "r": x1}[h]
    y = xy[1] - {"t": y0, "m": (y0 + y1) / 2, "b": y1}[v]
    draw.text((round(x), round(y)), text, font=font, fill=fill,
              stroke_width=stroke, stroke_fill=stroke_fill if stroke else None)


def _circle_mask(size: int) -> Image.Image:
    big = Image.new("L", (size * MASK_SUPERSAMPLE, size * MASK_SUPERSAMPLE), 0)
    ImageDraw.Draw(big).ellipse((0, 0, big.width - 1, big.height - 1), fill=255)
    return big.resize((size, size), Image.LANCZOS)


def _overlay_circle(img: Image.Image, box, fill) -> Image.Image:
    overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
    size = box[2] - box[0]
    disc = Image.new("RGBA", (size, size), fill)
    overlay.paste(disc, box[:2], _circle_mask(size))
    return Image.alpha_composite(img, overlay)


def _truncate(text: str, limit: int = MODS_MAX_CHARS) -> str:
    return text if len(text) <= limit else text[:limit - 2] + "..."


# ── Layers ───────────────────────────────────────────────────────────────────

def _draw_background(ctx: RenderContext) -> Image.Image:
    layout = ctx.layout
    bg = _load_image(ctx.background_path, "background")
    if bg is None:
        return Image.new("RGBA", (layout.width, layout.height), FALLBACK_BG + (255,))
    if bg.size != (layout.width, layout.height):
        bg = bg.resize((layout.width, layout.height), Image.LANCZOS)
    return bg


def _draw_avatar(img: Image.Image, ctx: RenderContext, avatar: Optional[Image.Image], side: Side):
    if avatar is None:
        return
    layout = ctx.layout
    box = layout.avatar_box(side is Side.LEFT)
    size = layout.avatar_size
    fitted = ImageOps.fit(avatar, (size, size), Image.LANCZOS)
    mask = ImageChops.multiply(_circle_mask(size), fitted.getchannel("A"))
    img.paste(fitted, box[:2], mask)
    ImageDraw.Draw(img).ellipse(box, outline=AVATAR_BORDER_COLOR, width=layout.avatar_border)


def _draw_names(draw: ImageDraw.ImageDraw, ctx: RenderContext, spec: CardSpec):
    layout = ctx.layout
    font = ctx.fonts.font(layout.username_font_size)
    for side, party in ((Side.LEFT, spec.left), (Side.RIGHT, spec.right)):
        name = (party.name or "").strip()
        if not name:
            continue
        cx, _ = layout.avatar_center(side is Side.LEFT)
        _draw_text(draw, (cx, layout.name_y), name, font, NAME_FILL, anchor="mt",
                   stroke_width=layout.username_outline, stroke_fill=NAME_OUTLINE)


def _draw_stats(draw: ImageDraw.ImageDraw, ctx: RenderContext, spec: CardSpec, rows: RowMetrics):
    layout = ctx.layout
    left_score, right_score = spec.scores
    label_font = ctx.fonts.font(rows.label_font_size)
    value_font = ctx.fonts.font(rows.value_font_size)
    cx = layout.center_x

    for i, stat in enumerate(STAT_ROWS):
        line_y = rows.line_y(i)
        winner = spec.winners[i] if i < len(spec.winners) else Winner.TIE

        _draw_text(draw, (cx, rows.label_y(i)), stat.label, label_font, LABEL_FILL,
                   anchor="mb", stroke_width=layout.outline_width, stroke_fill=LABEL_OUTLINE)

        if stat.text_only:
            _draw_text(draw, (cx - layout.mods_offset, line_y),
                       _truncate(stat.text(left_score)), value_font, LEFT_COLOR, anchor="rm")
            _draw_text(draw, (cx + layout.mods_offset, line_y),
                       _truncate(stat.text(right_score)), value_font, RIGHT_COLOR, anchor="lm")
            continue

        value1, value2 = stat.value(left_score), stat.value(right_score)
        scale = calculate_stat_scale(value1, value2, layout.max_line_length)

        for side, length, value, color in ((Side.LEFT, scale.length1, value1, LEFT_COLOR),
                                           (Side.RIGHT, scale.length2, value2, RIGHT_COLOR)):
            width = rows.line_width
            if Side.of(winner) is side:
                width = round(width * WINNER_LINE_MULTIPLIER)
            sign = -1 if side is Side.LEFT else 1
            end_x = cx + sign * length
            if length >= 1:
                draw.line([(cx, line_y), (end_x, line_y)], fill=color, width=width)
            text_x = end_x + sign * rows.value_margin
            _draw_text(draw, (text_x, line_y), stat.format(value), value_font, color,
                       anchor="rm" if side is Side.LEFT else "lm")


def _draw_decoration(img: Image.Image, ctx: RenderContext, side: Side) -> Image.Image:
    deco = _load_image(ctx.decoration_path(side), "winner decoration")
    if deco is None:
        return img
    layout = ctx.layout
    size = max(1, round(layout.avatar_size * DECORATION_RATIO))
    deco = deco.resize((size, size), Image.LANCZOS)
    cx, _ = layout.avatar_center(side is Side.LEFT)
    overlay = Image.new("RGBA", img.size, (0, 0, 0, 0))
    overlay.paste(deco, (round(cx - size / 2), round(layout.avatar_top - size / 2)), deco)
    return Image.alpha_composite(img, overlay)


def draw_card(ctx: RenderContext, spec: CardSpec) -> io.BytesIO:
    """Compose the whole card synchronously. Returns BytesIO PNG."""
    layout = ctx.layout

    img = _draw_background(ctx)

    for side, party in ((Side.LEFT, spec.left), (Side.RIGHT, spec.right)):
        _draw_avatar(img, ctx, _load_avatar(ctx, party.avatar), side)

    if spec.loser is not None:
        img = _overlay_circle(img, layout.avatar_box(spec.loser is Side.LEFT), LOSER_MASK)

    draw = ImageDraw.Draw(img)
    _draw_names(draw, ctx, spec)

    if spec.scores and all(spec.scores):
        _draw_stats(draw, ctx, spec, layout.rows(len(STAT_ROWS)))

    if spec.winner is not None:
        img = _draw_decoration(img, ctx, spec.winner)

    buf = io.BytesIO()
    img.convert("RGB").save(buf, format="PNG", optimize=True)
    buf.seek(0)
    return buf


# ── Public API ───────────────────────────────────────────────────────────────

async def render_card(ctx: RenderContext, spec: CardSpec) -> io.BytesIO:
    """Render off the event loop. Returns BytesIO PNG."""
    return await asyncio.to_thread(draw_card, ctx, spec)


async def render_prototype(ctx: RenderContext, party: Party,
                           recent_scores: Sequence[ScoreRecord] = ()) -> io.BytesIO:
    """Same player on both sides: their two most recent plays compared."""
    scores = tuple(recent_scores[:2]) if len(recent_scores) >= 2 else None
    return await render_card(ctx, CardSpec(left=party, right=party, scores=scores))


async def render_challenge(ctx: RenderContext, champion: Party, responder: Party,
                           champion_score: ScoreRecord, responder_score: ScoreRecord,
                           verdict: ComparisonVerdict) -> io.BytesIO:
    """Champion on the left, responder on the right; the loser's avatar is shaded."""
    spec = CardSpec(
        left=champion,
        right=responder,
        scores=(champion_score, responder_score),
        winners=verdict.per_metric_winner,
        loser=Side.of(verdict.loser),
    )
    return await render_card(ctx, spec)


# ── Quick test ───────────────────────────────────────────────────────────────

if __name__ == "__main__":
    from comparator import compare_scores

    champ = ScoreRecord.from_api({
        "score": 1_000_000, "pp": 150, "accuracy": 0.97, "max_combo": 400,
        "statistics": {"count_300": 380, "count_100": 12, "count_50": 3, "count_miss": 2},
        "mods": ["HD", "DT"], "user": {"username": "cookiezi"},
    })
    resp = ScoreRecord.from_api({
        "score": 1_100_000, "pp": 120, "accuracy": 0.98, "max_combo": 450,
        "statistics": {"count_300": 390, "count_100": 8, "count_50": 1, "count_miss": 1},
        "mods": [], "user": {"username": "mrekk"},
    })
    verdict = compare_scores(champ, resp, "mrekk")
    context = RenderContext(Path(__file__).parent / "assets" / "card", 600, 800)
    buf = asyncio.run(render_challenge(context, Party("cookiezi"), Party("mrekk"),
                                       champ, resp, verdict))
    with open("/tmp/test_challenge.png", "wb") as f: f.write(buf.read())
    print("✅ test_challenge.png")
