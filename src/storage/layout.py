# src/storage/layout.py — v1
"""Artifact directory structure.

Everything a run produces lives under ``{artifacts_dir}/runs/{run_id}/``:

    audio/      per-scene speech, voice-over, mixed track, timestamps.json
    images/     one image per scene
    captions/   captions.ass
    video/      per-scene motion clips and the joined visual track
    final/      final.mp4, thumbnails, qa.json, export.json

Artifact paths recorded on a Run are relative to ``artifacts_dir``.
"""

from __future__ import annotations

import shutil
from pathlib import Path

RUNS_DIR = "runs"

AUDIO_DIR = "audio"
IMAGES_DIR = "images"
CAPTIONS_DIR = "captions"
VIDEO_DIR = "video"
FINAL_DIR = "final"

RUN_SUBDIRS = (AUDIO_DIR, IMAGES_DIR, CAPTIONS_DIR, VIDEO_DIR, FINAL_DIR)


def run_dir(artifacts_root: Path, run_id: str) -> Path:
    """Return the directory of a specific run."""
    return artifacts_root / RUNS_DIR / run_id


def ensure_run_directories(run_path: Path) -> None:
    """Create all standard run sub-directories."""
    for name in RUN_SUBDIRS:
        (run_path / name).mkdir(parents=True, exist_ok=True)


# --- Audio ---

def scene_audio_path(run_path: Path, idx: int, suffix: str) -> Path:
    return run_path / AUDIO_DIR / f"scene_{idx:03d}{suffix}"


def voice_over_path(run_path: Path, suffix: str) -> Path:
    return run_path / AUDIO_DIR / f"voiceover{suffix}"


def mixed_audio_path(run_path: Path, suffix: str) -> Path:
    return run_path / AUDIO_DIR / f"mixed{suffix}"


def music_path(run_path: Path, suffix: str) -> Path:
    return run_path / AUDIO_DIR / f"music{suffix}"


def timestamps_path(run_path: Path) -> Path:
    return run_path / AUDIO_DIR / "timestamps.json"


def scene_timings_path(run_path: Path) -> Path:
    return run_path / AUDIO_DIR / "scene_timings.json"


# --- Images / captions / video ---

def scene_image_path(run_path: Path, idx: int) -> Path:
    return run_path / IMAGES_DIR / f"scene_{idx:03d}.png"


def captions_path(run_path: Path) -> Path:
    return run_path / CAPTIONS_DIR / "captions.ass"


def scene_clip_path(run_path: Path, idx: int) -> Path:
    return run_path / VIDEO_DIR / f"scene_{idx:03d}.mp4"


def visual_track_path(run_path: Path) -> Path:
    return run_path / VIDEO_DIR / "visual.mp4"


# --- Final ---

def final_video_path(run_path: Path) -> Path:
    return run_path / FINAL_DIR / "final.mp4"


def thumbnail_path(run_path: Path, label: str) -> Path:
    return run_path / FINAL_DIR / f"thumb_{label}.jpg"


def qa_report_path(run_path: Path) -> Path:
    return run_path / FINAL_DIR / "qa.json"


def export_manifest_path(run_path: Path) -> Path:
    return run_path / FINAL_DIR / "export.json"


def relative_artifact(artifacts_root: Path, path: Path) -> str:
    """Artifact path as stored on a Run (posix, relative to the root)."""
    try:
        return path.resolve().relative_to(artifacts_root.resolve()).as_posix()
    except ValueError:
        return path.as_posix()


# --- Resubmission ---

# Files a step reuses when they already exist in its run directory.
# Steps not listed here recompute their outputs every time.
REUSABLE_OUTPUTS: dict[str, tuple[str, ...]] = {
    "tts_generate": (f"{AUDIO_DIR}/scene_[0-9][0-9][0-9].*",),
    "asr_align": (f"{AUDIO_DIR}/timestamps.json",),
    "images_generate": (f"{IMAGES_DIR}/scene_[0-9][0-9][0-9].png",),
    "ffmpeg_render": (f"{VIDEO_DIR}/scene_[0-9][0-9][0-9].mp4",),
}


def seed_run_directory(source: Path, target: Path, steps: list[str]) -> list[Path]:
    """Copy the reusable outputs of ``steps`` from one run directory to another.

    Returns the copied files (paths inside ``target``). Empty files are skipped.
    """
    ensure_run_directories(target)
    copied: list[Path] = []
    for step in steps:
        for pattern in REUSABLE_OUTPUTS.get(step, ()):
            for path in sorted(source.glob(pattern)):
                if not path.is_file() or path.stat().st_size == 0:
                    continue
                dest = target / path.relative_to(source)
                shutil.copy2(path, dest)
                copied.append(dest)
    return copied
