"""
Pytest configuration and shared fixtures.
"""

import io
import sys
from pathlib import Path

import pytest
from PIL import Image

# Modules live at the repository root
sys.path.insert(0, str(Path(__file__).parent.parent))

from card_renderer import FontRegistrar, RenderContext


def make_score(score=1_000_000, pp=150.0, accuracy=0.97, max_combo=400,
               n300=380, n100=12, n50=3, miss=2, mods=None, username="Champion",
               beatmap_id=129891):
    """Build a stats-API style score payload."""
    return {
        "score": score,
        "pp": pp,
        "accuracy": accuracy,
        "max_combo": max_combo,
        "statistics": {
            "count_300": n300,
            "count_100": n100,
            "count_50": n50,
            "count_miss": miss,
        },
        "mods": mods if mods is not None else [],
        "rank": "S",
        "user": {"username": username, "id": 1},
        "beatmap": {
            "id": beatmap_id,
            "version": "FOUR DIMENSIONS",
            "beatmapset_id": 39804,
            "beatmapset": {"title": "Freedom Dive", "artist": "xi"},
        },
    }


def png_bytes(color=(255, 255, 255, 255), size=(64, 64)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGBA", size, color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def challenger_payload():
    return make_score()


@pytest.fixture
def responder_payload():
    return make_score(score=1_100_000, pp=120.0, accuracy=0.98, max_combo=450,
                      n300=390, n100=8, n50=1, miss=1, username="Responder")


@pytest.fixture
def empty_assets(tmp_path):
    """An assets directory with nothing in it."""
    assets = tmp_path / "assets"
    assets.mkdir()
    return assets


@pytest.fixture
def render_ctx(empty_assets):
    """Small 600×800 card with no assets and no font files."""
    return RenderContext(empty_assets, 600, 800, fonts=FontRegistrar(candidates=[]))
