# =============================================================================
# Audio Preparation — Upload Validation + ffmpeg Conversion
# =============================================================================
#
# Sits between the multipart upload and the Whisper call:
#
#   validate_upload()  → reject empty and oversized payloads
#   prepare_audio()    → one ffmpeg pass that
#                          1. decodes whatever the browser recorded
#                             (webm/opus, ogg, mp4/aac, wav)
#                          2. re-encodes to 16 kHz mono MP3
#                          3. runs `volumedetect` to measure loudness
#                        then rejects silent recordings.
#
# ffmpeg works on temp files rather than pipes: MP4 containers written by
# Safari keep their index at the end of the file and cannot be decoded from
# a non-seekable stream.
#
# If ffmpeg is not installed (or conversion is disabled) the upload is
# passed through untouched; Whisper accepts the common browser formats.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path

from vellum.services.errors import AudioProcessingError, SilentAudioError

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "audio/webm"
CONVERTED_MIME_TYPE = "audio/mpeg"

_MAX_VOLUME_RE = re.compile(r"max_volume:\s*(-?inf|-?\d+(?:\.\d+)?)\s*dB")
_MEAN_VOLUME_RE = re.compile(r"mean_volume:\s*(-?inf|-?\d+(?:\.\d+)?)\s*dB")
_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
_TIME_RE = re.compile(r"time=(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")

_EXTENSIONS = {
    "audio/webm": ".webm",
    "audio/ogg": ".ogg",
    "audio/mp4": ".m4a",
    "audio/x-m4a": ".m4a",
    "audio/mpeg": ".mp3",
    "audio/wav": ".wav",
    "audio/x-wav": ".wav",
}


@dataclass
class AudioStats:
    """Measurements taken from the ffmpeg pass."""

    duration_seconds: float | None = None
    max_volume_db: float | None = None
    mean_volume_db: float | None = None

    def is_silent(self, threshold_db: float) -> bool:
        if self.max_volume_db is None:
            return False
        return self.max_volume_db <= threshold_db


@dataclass
class PreparedAudio:
    """Audio ready for the transcription provider."""

    data: bytes
    mime_type: str
    filename: str
    converted: bool = False
    stats: AudioStats | None = None

    @property
    def duration_seconds(self) -> float | None:
        return self.stats.duration_seconds if self.stats else None


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def check_upload_size(size: int, max_bytes: int) -> None:
    """Raises AudioProcessingError when `size` is over `max_bytes`."""
    if size > max_bytes:
        max_mb = max_bytes // (1024 * 1024)
        raise AudioProcessingError(f"Audio file too large (max {max_mb}MB)")


def validate_upload(data: bytes, max_bytes: int) -> None:
    """
    Raises:
        AudioProcessingError: empty payload or payload over `max_bytes`.
    """
    if not data:
        raise AudioProcessingError("Audio file is empty")
    check_upload_size(len(data), max_bytes)


# ---------------------------------------------------------------------------
# ffmpeg output parsing
# ---------------------------------------------------------------------------


def _parse_db(value: str) -> float:
    if value.endswith("inf"):
        return float("-inf")
    return float(value)


def _parse_hms(match: re.Match) -> float:
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def parse_ffmpeg_stats(stderr: str) -> AudioStats:
    """
    Read duration and loudness from ffmpeg's stderr.

    Duration comes from the input header; browser-recorded webm often has
    no duration there ("N/A"), in which case the last `time=` progress
    stamp is used instead.
    """
    stats = AudioStats()

    duration = _DURATION_RE.search(stderr)
    if duration:
        stats.duration_seconds = _parse_hms(duration)
    else:
        stamps = list(_TIME_RE.finditer(stderr))
        if stamps:
            stats.duration_seconds = _parse_hms(stamps[-1])

    max_volume = _MAX_VOLUME_RE.search(stderr)
    if max_volume:
        stats.max_volume_db = _parse_db(max_volume.group(1))

    mean_volume = _MEAN_VOLUME_RE.search(stderr)
    if mean_volume:
        stats.mean_volume_db = _parse_db(mean_volume.group(1))

    return stats


def extension_for(filename: str | None, mime_type: str | None) -> str:
    """Pick a file extension ffmpeg can use to sniff the input container."""
    if filename:
        suffix = Path(filename).suffix.lower()
        if suffix:
            return suffix
    base_mime = (mime_type or "").split(";")[0].strip().lower()
    return _EXTENSIONS.get(base_mime, ".webm")


# ---------------------------------------------------------------------------
# ffmpeg execution
# ---------------------------------------------------------------------------


async def _run_ffmpeg(
    ffmpeg_path: str,
    args: list[str],
    timeout_seconds: float,
) -> tuple[int, str]:
    """Run ffmpeg and return (returncode, stderr). FileNotFoundError if missing."""
    process = await asyncio.create_subprocess_exec(
        ffmpeg_path,
        *args,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )
    try:
        _, stderr = await asyncio.wait_for(
            process.communicate(), timeout=timeout_seconds,
        )
    except asyncio.TimeoutError as e:
        process.kill()
        await process.wait()
        raise AudioProcessingError("Audio conversion timed out") from e
    return process.returncode or 0, stderr.decode("utf-8", errors="replace")


async def prepare_audio(
    data: bytes,
    filename: str | None = None,
    content_type: str | None = None,
    *,
    max_bytes: int,
    convert: bool = True,
    ffmpeg_path: str = "ffmpeg",
    timeout_seconds: float = 120,
    silence_threshold_db: float = -60.0,
) -> PreparedAudio:
    """
    Validate an upload and convert it for transcription.

    Raises:
        AudioProcessingError: empty, too large, undecodable, or timed out.
        SilentAudioError: ffmpeg measured no audible signal.
    """
    validate_upload(data, max_bytes)

    original = PreparedAudio(
        data=data,
        mime_type=content_type or DEFAULT_MIME_TYPE,
        filename=filename or "recording.webm",
    )
    if not convert:
        return original

    suffix = extension_for(filename, content_type)
    with tempfile.TemporaryDirectory(prefix="vellum-audio-") as workdir:
        input_path = Path(workdir) / f"input{suffix}"
        output_path = Path(workdir) / "output.mp3"
        input_path.write_bytes(data)

        args = [
            "-hide_banner", "-nostdin", "-y",
            "-i", str(input_path),
            "-vn",
            "-af", "volumedetect",
            "-ac", "1",
            "-ar", "16000",
            "-c:a", "libmp3lame",
            "-q:a", "4",
            str(output_path),
        ]
        try:
            returncode, stderr = await _run_ffmpeg(ffmpeg_path, args, timeout_seconds)
        except FileNotFoundError:
            logger.warning(
                "ffmpeg not found at '%s'; sending original audio unconverted",
                ffmpeg_path,
            )
            return original

        if returncode != 0 or not output_path.exists():
            logger.warning(
                "ffmpeg failed (exit %d): %s", returncode, stderr.strip()[-500:],
            )
            raise AudioProcessingError("Could not process audio file")

        converted_bytes = output_path.read_bytes()

    stats = parse_ffmpeg_stats(stderr)
    logger.info(
        "Converted audio: %d → %d bytes, duration=%s s, max_volume=%s dB",
        len(data), len(converted_bytes),
        stats.duration_seconds, stats.max_volume_db,
    )

    if stats.is_silent(silence_threshold_db):
        raise SilentAudioError("No speech detected: audio appears to be silent")

    if not converted_bytes:
        raise AudioProcessingError("Could not process audio file")

    stem = Path(filename).stem if filename else "recording"
    return PreparedAudio(
        data=converted_bytes,
        mime_type=CONVERTED_MIME_TYPE,
        filename=f"{stem}.mp3",
        converted=True,
        stats=stats,
    )
