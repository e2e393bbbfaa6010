"""
card_layout.py — Geometry for the challenge card.

All positions are authored against a 600×800 reference card and scaled to the
real canvas. The stat rows are scaled a second time so the nine rows always
fill whatever vertical space is left under the player names.
"""

from __future__ import annotations

import math
import sys
from dataclasses import dataclass

# ── Reference design (600×800) ───────────────────────────────────────────────

REF_W = 600
REF_H = 800

REF_AVATAR_SIZE = 120
REF_AVATAR_BORDER = 3
REF_AVATAR_TOP_MARGIN = 20
REF_AVATAR_OFFSET = 130          # avatar centre distance from card centre
REF_USERNAME_MARGIN = 8
REF_USERNAME_FONT = 24
REF_USERNAME_OUTLINE = 3

REF_STATS_MARGIN_TOP = 28
REF_STATS_BOTTOM_MARGIN = 24
REF_ROW_HEIGHT = 34
REF_LINE_Y_OFFSET = 12
REF_LABEL_ABOVE_LINE = 10
REF_LABEL_FONT = 16
REF_VALUE_FONT = 14
REF_VALUE_MARGIN = 6
REF_LINE_STROKE = 6
REF_OUTLINE = 2
REF_MODS_OFFSET = 90
REF_MAX_LINE = 200

TOP_OFFSET_RATIO = 0.1
MIN_STROKE = 2


# ── Stat scale ───────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class StatScale:
    length1: float
    length2: float
    scale_value: float


def _clean(value) -> float:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(value) else value


def calculate_stat_scale(value1, value2, max_length: float) -> StatScale:
    """
    Turn two stat values into bar lengths that share one scale.

    The scale is the power of ten above the bigger value, so the bigger bar
    covers 10–100% of max_length. Past the float range the bigger value is
    its own scale. When both bars come out shorter than half of max_length
    they are doubled.
    """
    value1, value2 = _clean(value1), _clean(value2)
    bigger = value1 if value1 >= value2 else value2

    if bigger <= 0 or not math.isfinite(bigger):
        scale_value = 100.0
    else:
        exponent = math.floor(math.log10(bigger)) + 1
        if exponent > sys.float_info.max_10_exp:
            scale_value = bigger
        else:
            scale_value = 10.0 ** exponent

    def length(value: float) -> float:
        if not math.isfinite(value):
            return max_length if value > 0 else 0.0
        return max(0.0, min(value / scale_value * max_length, max_length))

    length1, length2 = length(value1), length(value2)

    half = max_length / 2
    if length1 < half and length2 < half:
        length1 *= 2
        length2 *= 2

    return StatScale(length1, length2, scale_value)


# ── Layout ───────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class RowMetrics:
    count: int
    start_y: float
    row_height: float
    line_y_offset: float
    label_above_line: float
    label_font_size: int
    value_font_size: int
    value_margin: float
    line_width: int

    def line_y(self, index: int) -> float:
        return self.start_y + index * self.row_height + self.line_y_offset

    def label_y(self, index: int) -> float:
        return self.line_y(index) - self.label_above_line


@dataclass(frozen=True)
class CardLayout:
    width: int
    height: int
    scale_x: float
    scale_y: float
    center_x: float
    avatar_size: int
    avatar_border: int
    avatar_top: int
    avatar_offset: int
    username_margin: int
    username_font_size: int
    username_outline: int
    stats_margin_top: int
    stats_bottom_margin: int
    row_height_base: int
    outline_width: int
    mods_offset: int
    max_line_length: int

    @classmethod
    def for_canvas(cls, width: int, height: int) -> "CardLayout":
        sx = width / REF_W
        sy = height / REF_H
        return cls(
            width=width,
            height=height,
            scale_x=sx,
            scale_y=sy,
            center_x=width / 2,
            avatar_size=round(REF_AVATAR_SIZE * sy),
            avatar_border=max(1, round(REF_AVATAR_BORDER * sy)),
            avatar_top=round(REF_AVATAR_TOP_MARGIN * sy) + round(height * TOP_OFFSET_RATIO),
            avatar_offset=round(REF_AVATAR_OFFSET * sx),
            username_margin=round(REF_USERNAME_MARGIN * sy),
            username_font_size=round(REF_USERNAME_FONT * sy),
            username_outline=max(MIN_STROKE, round(REF_USERNAME_OUTLINE * sy)),
            stats_margin_top=round(REF_STATS_MARGIN_TOP * sy),
            stats_bottom_margin=round(REF_STATS_BOTTOM_MARGIN * sy),
            row_height_base=round(REF_ROW_HEIGHT * sy),
            outline_width=max(MIN_STROKE, round(REF_OUTLINE * sy)),
            mods_offset=round(REF_MODS_OFFSET * sx),
            max_line_length=round(REF_MAX_LINE * sx),
        )

    # avatars

    def avatar_center(self, left: bool) -> tuple[float, float]:
        cx = self.center_x - self.avatar_offset if left else self.center_x + self.avatar_offset
        return cx, self.avatar_top + self.avatar_size / 2

    def avatar_box(self, left: bool) -> tuple[int, int, int, int]:
        cx, cy = self.avatar_center(left)
        r = self.avatar_size / 2
        x0, y0 = round(cx - r), round(cy - r)
        return x0, y0, x0 + self.avatar_size, y0 + self.avatar_size

    @property
    def name_y(self) -> int:
        return self.avatar_top + self.avatar_size + self.username_margin

    @property
    def stats_start_y(self) -> int:
        return self.name_y + self.username_font_size + self.stats_margin_top

    # stat rows

    def rows(self, count: int, start_y: float = None) -> RowMetrics:
        if start_y is None:
            start_y = self.stats_start_y
        count = max(1, count)
        available = max(0, self.height - start_y - self.stats_bottom_margin)
        row_height = available / count
        k = row_height / self.row_height_base if self.row_height_base else 0
        sy, sx = self.scale_y, self.scale_x
        return RowMetrics(
            count=count,
            start_y=start_y,
            row_height=row_height,
            line_y_offset=REF_LINE_Y_OFFSET * sy * k,
            label_above_line=REF_LABEL_ABOVE_LINE * sy * k,
            label_font_size=max(1, round(round(REF_LABEL_FONT * sy) * k)),
            value_font_size=max(1, round(round(REF_VALUE_FONT * sy) * k)),
            value_margin=round(REF_VALUE_MARGIN * sx) * k,
            line_width=max(MIN_STROKE, round(REF_LINE_STROKE * sy * k)),
        )
