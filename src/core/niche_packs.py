# src/core/niche_packs.py — v1
"""Niche packs: per-niche visual style, caption styling and audio mix defaults.

Packs are static configuration. Unknown ids resolve to the default pack so a
render never fails on a missing niche.
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_PACK_ID = "facts"

COMPOSITION_REQUIREMENTS = ", ".join([
    "vertical 9:16 aspect ratio composition",
    "subject centered or following rule of thirds",
    "clear focal point",
    "professional framing with balanced negative space",
    "high quality",
    "detailed",
    "sharp focus",
    "suitable for mobile viewing",
])


class CaptionStyle(BaseModel):
    """Burned-in caption appearance (colors as #RRGGBB)."""

    font_family: str = "Arial Black"
    font_size: int = 48
    primary_color: str = "#FFFFFF"
    outline_color: str = "#000000"
    outline_width: int = 4
    highlight_color: str = "#FFD700"
    margin_bottom: int = 200
    margin_horizontal: int = 40


class NichePack(BaseModel):
    id: str
    name: str
    style_prompt: str
    caption_style: CaptionStyle = Field(default_factory=CaptionStyle)
    # Applied to scenes that carry no effect tag
    default_effect: str = "slow_zoom_in"
    music_volume: float | None = None


NICHE_PACKS: dict[str, NichePack] = {
    pack.id: pack
    for pack in [
        NichePack(
            id="horror",
            name="Horror Stories",
            style_prompt=(
                "Dark, eerie, cinematic horror style, atmospheric lighting, muted "
                "colors with red accents, fog and shadows, high contrast"
            ),
            caption_style=CaptionStyle(primary_color="#FF0000", highlight_color="#FFFFFF"),
            music_volume=0.2,
        ),
        NichePack(
            id="facts",
            name="Amazing Facts",
            style_prompt=(
                "Clean, modern, educational style, bright vibrant colors, clear "
                "composition, professional photography style, well-lit subjects"
            ),
            caption_style=CaptionStyle(primary_color="#00D4FF", highlight_color="#FFD700"),
        ),
        NichePack(
            id="motivation",
            name="Motivation",
            style_prompt=(
                "Inspiring, epic, cinematic style, golden hour lighting, wide "
                "landscapes, silhouettes, dramatic skies"
            ),
            caption_style=CaptionStyle(highlight_color="#FF6B00"),
            default_effect="slow_zoom_out",
            music_volume=0.2,
        ),
        NichePack(
            id="story",
            name="Storytime",
            style_prompt=(
                "Warm illustrated storybook style, soft lighting, expressive "
                "characters, rich textures"
            ),
            default_effect="pan_right",
        ),
        NichePack(
            id="history",
            name="History",
            style_prompt=(
                "Historical documentary style, sepia and desaturated tones, "
                "period-accurate details, museum lighting"
            ),
            caption_style=CaptionStyle(primary_color="#F5DEB3", highlight_color="#FFD700"),
            default_effect="pan_left",
            music_volume=0.12,
        ),
        NichePack(
            id="science",
            name="Science",
            style_prompt=(
                "Futuristic scientific visualization, clean lab aesthetic, glowing "
                "blue accents, macro detail"
            ),
            caption_style=CaptionStyle(primary_color="#7FFFD4", highlight_color="#FFFFFF"),
        ),
    ]
}


def get_niche_pack(pack_id: str | None) -> NichePack:
    """Return the pack for ``pack_id``, falling back to the default pack."""
    if pack_id and pack_id in NICHE_PACKS:
        return NICHE_PACKS[pack_id]
    if pack_id:
        logger.warning("Unknown niche pack %r, using %r", pack_id, DEFAULT_PACK_ID)
    return NICHE_PACKS[DEFAULT_PACK_ID]
