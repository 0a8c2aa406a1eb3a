# src/media/effects.py — v1
"""Motion effects applied to still images (Ken Burns style).

Each effect maps to an ffmpeg filter chain that first fills the 1080x1920
frame (scale up, center crop) and then animates it with ``zoompan`` over a
fixed number of output frames.
"""

from __future__ import annotations

import logging
from enum import Enum

logger = logging.getLogger(__name__)

OUTPUT_WIDTH = 1080
OUTPUT_HEIGHT = 1920
OUTPUT_FPS = 30

ZOOM_STEP = 0.0005
MAX_ZOOM = 1.1

_FILL_FRAME = (
    f"scale={OUTPUT_WIDTH}:{OUTPUT_HEIGHT}:force_original_aspect_ratio=increase,"
    f"crop={OUTPUT_WIDTH}:{OUTPUT_HEIGHT}"
)
_CENTER_X = "iw/2-(iw/zoom/2)"
_CENTER_Y = "ih/2-(ih/zoom/2)"


class MotionEffect(str, Enum):
    STATIC = "static"
    SLOW_ZOOM_IN = "slow_zoom_in"
    SLOW_ZOOM_OUT = "slow_zoom_out"
    PAN_LEFT = "pan_left"
    PAN_RIGHT = "pan_right"
    TILT_UP = "tilt_up"
    TILT_DOWN = "tilt_down"
    GLITCH = "glitch"
    FLASH_CUT = "flash_cut"
    FADE = "fade"


def parse_effect(tag: str | None) -> MotionEffect:
    """Map a free-form effect tag to a known effect; unknown tags are static."""
    if not tag:
        return MotionEffect.STATIC
    try:
        return MotionEffect(tag.strip().lower())
    except ValueError:
        logger.warning("Unknown motion effect %r, rendering static", tag)
        return MotionEffect.STATIC


def frame_count(duration_sec: float) -> int:
    """Exact number of output frames for a clip of ``duration_sec``."""
    return max(1, round(duration_sec * OUTPUT_FPS))


def _zoompan(zoom: str, x: str, y: str, frames: int) -> str:
    return (
        f"zoompan=z='{zoom}':x='{x}':y='{y}':d={frames}"
        f":s={OUTPUT_WIDTH}x{OUTPUT_HEIGHT}:fps={OUTPUT_FPS}"
    )


def build_motion_filter(effect: MotionEffect | str, frames: int) -> str:
    """Build the ``-vf`` filter chain for ``effect`` over ``frames`` frames."""
    effect = effect if isinstance(effect, MotionEffect) else parse_effect(effect)
    last = max(frames - 1, 1)

    if effect is MotionEffect.SLOW_ZOOM_IN:
        motion = _zoompan(f"min(zoom+{ZOOM_STEP},{MAX_ZOOM})", _CENTER_X, _CENTER_Y, frames)
    elif effect is MotionEffect.SLOW_ZOOM_OUT:
        motion = _zoompan(
            f"if(eq(on,0),{MAX_ZOOM},max(zoom-{ZOOM_STEP},1))", _CENTER_X, _CENTER_Y, frames
        )
    elif effect is MotionEffect.PAN_LEFT:
        motion = _zoompan(str(MAX_ZOOM), f"(iw-iw/zoom)*(1-on/{last})", _CENTER_Y, frames)
    elif effect is MotionEffect.PAN_RIGHT:
        motion = _zoompan(str(MAX_ZOOM), f"(iw-iw/zoom)*on/{last}", _CENTER_Y, frames)
    elif effect is MotionEffect.TILT_UP:
        motion = _zoompan(str(MAX_ZOOM), _CENTER_X, f"(ih-ih/zoom)*(1-on/{last})", frames)
    elif effect is MotionEffect.TILT_DOWN:
        motion = _zoompan(str(MAX_ZOOM), _CENTER_X, f"(ih-ih/zoom)*on/{last}", frames)
    else:
        motion = _zoompan("1", "0", "0", frames)

    chain = [_FILL_FRAME, motion]
    if effect is MotionEffect.GLITCH:
        chain.append("noise=c0s=10:c0f=t+u")
    elif effect is MotionEffect.FLASH_CUT:
        chain.append("fade=in:0:5")
    elif effect is MotionEffect.FADE:
        fade_len = min(15, max(frames // 2, 1))
        chain.append(f"fade=in:0:{fade_len},fade=out:{max(frames - fade_len, 0)}:{fade_len}")
    chain.append("setsar=1,format=yuv420p")
    return ",".join(chain)
