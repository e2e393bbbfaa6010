"""
Tests for the stat card compositor and font registration.
Cards are rendered at the 600×800 reference size to keep them fast.
"""

import asyncio
import io

from PIL import Image

from card_renderer import (GENERIC_FAMILY, CardSpec, FontRegistrar, Party,
                           RenderContext, Side, draw_card, render_challenge, render_prototype)
from comparator import Winner, compare_scores
from conftest import make_score, png_bytes
from scores import ScoreRecord


def open_png(buf) -> Image.Image:
    data = buf.getvalue() if isinstance(buf, io.BytesIO) else buf
    image = Image.open(io.BytesIO(data))
    image.load()
    return image


def challenge_spec(challenger_payload, responder_payload, avatar=None, loser=Side.LEFT):
    left = ScoreRecord.from_api(challenger_payload)
    right = ScoreRecord.from_api(responder_payload)
    verdict = compare_scores(left, right, "Responder")
    return CardSpec(Party("Champion", avatar), Party("Responder", avatar),
                    (left, right), verdict.per_metric_winner, loser)


class TestFontRegistrar:
    """One-time font lookup with a generic fallback"""

    def test_no_candidates_falls_back(self):
        fonts = FontRegistrar(candidates=[])
        assert fonts.register() is False
        assert fonts.family == GENERIC_FAMILY
        assert fonts.font(20) is not None

    def test_register_is_idempotent(self, tmp_path):
        fonts = FontRegistrar(candidates=[tmp_path / "missing.ttf"])
        fonts.register()
        assert fonts.registered
        # a font appearing later is not picked up; registration already happened
        (tmp_path / "missing.ttf").write_bytes(b"not a font")
        assert fonts.register() is False
        assert fonts.path is None

    def test_broken_font_file_is_skipped(self, tmp_path):
        broken = tmp_path / "broken.ttf"
        broken.write_bytes(b"definitely not a font")
        fonts = FontRegistrar(candidates=[broken])
        assert fonts.register() is False
        assert fonts.family == GENERIC_FAMILY

    def test_faces_are_cached_per_size(self):
        fonts = FontRegistrar(candidates=[])
        assert fonts.font(18) is fonts.font(18)

    def test_default_candidates_include_font_dir(self, tmp_path):
        (tmp_path / "card.ttf").write_bytes(b"")
        (tmp_path / "notes.txt").write_text("x")
        candidates = FontRegistrar(tmp_path).candidates()
        assert tmp_path / "card.ttf" in candidates
        assert tmp_path / "notes.txt" not in candidates


class TestDrawCard:
    """Layering and fallbacks"""

    def test_canvas_size_and_format(self, render_ctx, challenger_payload, responder_payload):
        image = open_png(draw_card(render_ctx, challenge_spec(challenger_payload, responder_payload)))
        assert image.format == "PNG"
        assert image.size == (600, 800)

    def test_missing_background_uses_flat_colour(self, render_ctx):
        image = open_png(draw_card(render_ctx, CardSpec(Party(), Party())))
        assert image.convert("RGB").getpixel((5, 5)) == (26, 26, 26)

    def test_background_image_is_used(self, render_ctx):
        backgrounds = render_ctx.assets_dir / "backgrounds"
        backgrounds.mkdir()
        Image.new("RGB", (600, 800), (10, 120, 200)).save(backgrounds / "teto_bg.png")
        image = open_png(draw_card(render_ctx, CardSpec(Party(), Party())))
        assert image.convert("RGB").getpixel((5, 5)) == (10, 120, 200)

    def test_corrupt_background_is_ignored(self, render_ctx):
        backgrounds = render_ctx.assets_dir / "backgrounds"
        backgrounds.mkdir()
        (backgrounds / "teto_bg.png").write_bytes(b"garbage")
        image = open_png(draw_card(render_ctx, CardSpec(Party(), Party())))
        assert image.convert("RGB").getpixel((5, 5)) == (26, 26, 26)

    def test_avatar_is_drawn_inside_circle(self, render_ctx):
        avatar = png_bytes((255, 0, 0, 255))
        image = open_png(draw_card(render_ctx, CardSpec(Party("A", avatar), Party("B", avatar))))
        rgb = image.convert("RGB")
        cx, cy = render_ctx.layout.avatar_center(True)
        assert rgb.getpixel((int(cx), int(cy))) == (255, 0, 0)
        # the corner of the avatar box is outside the circle
        x0, y0, _, _ = render_ctx.layout.avatar_box(True)
        assert rgb.getpixel((x0 + 1, y0 + 1)) == (26, 26, 26)

    def test_corrupt_avatar_falls_back_to_placeholder(self, render_ctx):
        pfp = render_ctx.assets_dir / "pfp"
        pfp.mkdir()
        Image.new("RGB", (32, 32), (0, 255, 0)).save(pfp / "no_pfp.png")
        image = open_png(draw_card(render_ctx, CardSpec(Party("A", b"\x89PNG broken"), Party("B"))))
        cx, cy = render_ctx.layout.avatar_center(True)
        assert image.convert("RGB").getpixel((int(cx), int(cy))) == (0, 255, 0)

    def test_no_avatar_and_no_placeholder_draws_nothing(self, render_ctx):
        image = open_png(draw_card(render_ctx, CardSpec(Party("A"), Party("B"))))
        cx, cy = render_ctx.layout.avatar_center(True)
        assert image.convert("RGB").getpixel((int(cx), int(cy))) == (26, 26, 26)

    def test_loser_avatar_is_shaded(self, render_ctx, challenger_payload, responder_payload):
        spec = challenge_spec(challenger_payload, responder_payload,
                              avatar=png_bytes((255, 255, 255, 255)), loser=Side.LEFT)
        rgb = open_png(draw_card(render_ctx, spec)).convert("RGB")
        left = rgb.getpixel(tuple(int(v) for v in render_ctx.layout.avatar_center(True)))
        right = rgb.getpixel(tuple(int(v) for v in render_ctx.layout.avatar_center(False)))
        assert max(left) < 100
        assert right == (255, 255, 255)

    def test_winner_decoration_drawn_over_winner(self, render_ctx, challenger_payload, responder_payload):
        decorations = render_ctx.assets_dir / "decorations"
        decorations.mkdir()
        Image.new("RGBA", (40, 40), (255, 200, 0, 255)).save(decorations / "teto_r_cropped.png")
        Image.new("RGBA", (40, 40), (0, 0, 255, 255)).save(decorations / "teto_l_cropped.png")

        spec = challenge_spec(challenger_payload, responder_payload, loser=Side.LEFT)
        rgb = open_png(draw_card(render_ctx, spec)).convert("RGB")

        layout = render_ctx.layout
        right_cx, _ = layout.avatar_center(False)
        left_cx, _ = layout.avatar_center(True)
        assert rgb.getpixel((int(right_cx), layout.avatar_top)) == (255, 200, 0)
        assert rgb.getpixel((int(left_cx), layout.avatar_top)) != (0, 0, 255)

    def test_stats_rows_draw_bars(self, render_ctx, challenger_payload, responder_payload):
        spec = challenge_spec(challenger_payload, responder_payload)
        rgb = open_png(draw_card(render_ctx, spec)).convert("RGB")
        rows = render_ctx.layout.rows(9)
        y = round(rows.line_y(4))
        cx = int(render_ctx.layout.center_x)
        assert rgb.getpixel((cx - 10, y)) == (175, 241, 238)
        assert rgb.getpixel((cx + 10, y)) == (241, 79, 198)

    def test_winning_bar_is_thicker(self, render_ctx, challenger_payload, responder_payload):
        left = ScoreRecord.from_api(challenger_payload)
        right = ScoreRecord.from_api(responder_payload)
        rows = render_ctx.layout.rows(9)
        cx = int(render_ctx.layout.center_x)

        def column_height(winners, x):
            spec = CardSpec(Party(), Party(), (left, right), winners)
            rgb = open_png(draw_card(render_ctx, spec)).convert("RGB")
            y = round(rows.line_y(4))
            colour = rgb.getpixel((x, y))
            return sum(1 for dy in range(-20, 21) if rgb.getpixel((x, y + dy)) == colour)

        plain = column_height((Winner.TIE,) * 9, cx + 10)
        thick = column_height((Winner.TIE,) * 4 + (Winner.RESPONDER,) + (Winner.TIE,) * 4, cx + 10)
        assert thick > plain

    def test_rendering_is_deterministic(self, render_ctx, challenger_payload, responder_payload):
        spec = challenge_spec(challenger_payload, responder_payload, avatar=png_bytes())
        assert draw_card(render_ctx, spec).getvalue() == draw_card(render_ctx, spec).getvalue()

    def test_huge_finite_pp_renders(self, render_ctx):
        record = ScoreRecord.from_api(make_score(pp=1.5e308))
        image = open_png(draw_card(render_ctx, CardSpec(Party(), Party(), (record, record))))
        assert image.size == (600, 800)

    def test_long_names_and_mods_do_not_fail(self, render_ctx):
        left = ScoreRecord.from_api(make_score(mods=["HD", "HR", "DT", "FL", "NF", "SO", "EZ"]))
        spec = CardSpec(Party("x" * 200), Party("Zoë"), (left, left))
        assert open_png(draw_card(render_ctx, spec)).size == (600, 800)


class TestRenderModes:
    """Async entry points"""

    def test_prototype_with_two_scores(self, render_ctx, challenger_payload, responder_payload):
        scores = [ScoreRecord.from_api(challenger_payload), ScoreRecord.from_api(responder_payload)]
        buf = asyncio.run(render_prototype(render_ctx, Party("me", png_bytes()), scores))
        assert open_png(buf).size == (600, 800)

    def test_prototype_with_one_score_skips_rows(self, render_ctx, challenger_payload):
        one = [ScoreRecord.from_api(challenger_payload)]
        with_one = asyncio.run(render_prototype(render_ctx, Party("me"), one))
        none = asyncio.run(render_prototype(render_ctx, Party("me"), []))
        assert with_one.getvalue() == none.getvalue()

    def test_challenge_mode_shades_the_loser(self, render_ctx, challenger_payload, responder_payload):
        left = ScoreRecord.from_api(challenger_payload)
        right = ScoreRecord.from_api(responder_payload)
        verdict = compare_scores(left, right, "Responder")
        avatar = png_bytes((255, 255, 255, 255))

        buf = asyncio.run(render_challenge(render_ctx, Party("Champion", avatar),
                                           Party("Responder", avatar), left, right, verdict))

        rgb = open_png(buf).convert("RGB")
        left_pixel = rgb.getpixel(tuple(int(v) for v in render_ctx.layout.avatar_center(True)))
        assert max(left_pixel) < 100  # the champion lost 1–4

    def test_context_builds_default_registrar(self, empty_assets):
        ctx = RenderContext(empty_assets, 600, 800)
        assert ctx.fonts.font_dir == empty_assets / "fonts"
        assert ctx.layout.width == 600
