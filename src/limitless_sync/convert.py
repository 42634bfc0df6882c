"""
Side-car renderings of downloaded lifelog files.

Each converter reads one ``<id>.json`` record file (the detail-fetch envelope,
``{"data": {"lifelog": {...}}}``) and writes ``<id>.vtt``, ``<id>.txt`` or
``<id>.md``. A non-empty existing target is left alone and the converter
returns None.
"""

from __future__ import annotations
import glob
import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from .util import plural, progress_print, warn

_LINE_BREAK = re.compile(r"\r?\n")


class ConversionError(ValueError):
    pass


def ms_to_timestamp(ms) -> str:
    total = int(ms)
    hrs = total // 3_600_000
    mins = (total % 3_600_000) // 60_000
    secs = (total % 60_000) // 1_000
    return f"{hrs:02d}:{mins:02d}:{secs:02d}.{total % 1_000:03d}"


def lifelog_from(data: Any) -> Dict[str, Any]:
    """Returns the ``data.lifelog`` object, rejecting legacy flat files."""
    lifelog = None
    if isinstance(data, dict) and isinstance(data.get("data"), dict):
        lifelog = data["data"].get("lifelog")
    if not isinstance(lifelog, dict):
        raise ConversionError("Unsupported JSON structure: 'data.lifelog' key missing.")
    return lifelog


def _first_present(chunk: Dict[str, Any], *keys: str):
    for key in keys:
        if chunk.get(key) is not None:
            return chunk[key]
    return None

def chunk_offsets(chunk: Dict[str, Any]) -> Optional[Tuple[int, int]]:
    """
    (start_ms, end_ms) of a content chunk, or None when either is missing.

    ``startOffsetMs``/``endOffsetMs`` take precedence over the older
    ``startOffset``/``endOffset`` spellings.
    """
    start = _first_present(chunk, "startOffsetMs", "startOffset")
    end = _first_present(chunk, "endOffsetMs", "endOffset")
    if start is None or end is None:
        return None
    return int(start), int(end)


def _fold(text: Any) -> str:
    return _LINE_BREAK.sub(" ", str(text or "")).strip()

def _contents(lifelog: Dict[str, Any]) -> List[Dict[str, Any]]:
    return lifelog.get("contents") or []

def _blockquotes(lifelog: Dict[str, Any]) -> Iterable[Dict[str, Any]]:
    return (c for c in _contents(lifelog) if c.get("type") == "blockquote")

def speakers_of(lifelog: Dict[str, Any]) -> List[str]:
    return sorted({c["speakerName"] for c in _contents(lifelog) if c.get("speakerName")})


def _load(json_path: Path) -> Tuple[Dict[str, Any], str]:
    lifelog = lifelog_from(json.loads(Path(json_path).read_text(encoding="utf-8")))
    lifelog_id = lifelog.get("id")
    if not lifelog_id:
        raise ConversionError("Lifelog has no 'id'.")
    return lifelog, str(lifelog_id)

def _target(json_path: Path, lifelog_id: str, ext: str, outdir: Optional[Path]) -> Path:
    base_dir = Path(outdir) if outdir else Path(json_path).parent
    return base_dir / f"{lifelog_id}.{ext}"

def _already_done(path: Path) -> bool:
    return path.is_file() and path.stat().st_size > 0


def json_to_vtt(json_path: Path, outdir: Optional[Path]=None) -> Optional[Path]:
    lifelog, lifelog_id = _load(json_path)
    vtt_path = _target(json_path, lifelog_id, "vtt", outdir)
    if _already_done(vtt_path):
        return None

    lines = ["WEBVTT", "", f"NOTE ID: {lifelog_id}"]
    if lifelog.get("startTime"):
        lines.append(f"NOTE StartTime: {lifelog['startTime']}")
    if lifelog.get("endTime"):
        lines.append(f"NOTE EndTime: {lifelog['endTime']}")
    speakers = speakers_of(lifelog)
    if speakers:
        lines.append(f"NOTE Speakers: {', '.join(speakers)}")
    lines.append("")

    for chunk in _blockquotes(lifelog):
        offsets = chunk_offsets(chunk)
        if offsets is None:
            continue
        speaker = chunk.get("speakerName") or "Unknown"
        lines.append(f"{ms_to_timestamp(offsets[0])} --> {ms_to_timestamp(offsets[1])}")
        lines.append(f"<v {speaker}> {_fold(chunk.get('content'))}")
        lines.append("")

    vtt_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return vtt_path


def json_to_txt(json_path: Path, outdir: Optional[Path]=None) -> Optional[Path]:
    """
    Plain-text transcript grouped by speaker::

        ID: abc123
        Speakers: Alice, Bob

        Alice:
        Hello

        Bob:
        Hi
    """
    lifelog, lifelog_id = _load(json_path)
    txt_path = _target(json_path, lifelog_id, "txt", outdir)
    if _already_done(txt_path):
        return None

    lines = [f"ID: {lifelog_id}"]
    if lifelog.get("startTime"):
        lines.append(f"StartTime: {lifelog['startTime']}")
    if lifelog.get("endTime"):
        lines.append(f"EndTime: {lifelog['endTime']}")
    speakers = speakers_of(lifelog)
    if speakers:
        lines.append(f"Speakers: {', '.join(speakers)}")
    lines.append("")

    prev_speaker = None
    for chunk in _blockquotes(lifelog):
        speaker = str(chunk.get("speakerName") or "Unknown").strip()
        text = _fold(chunk.get("content"))
        if not text:
            continue
        if speaker != prev_speaker:
            if prev_speaker is not None:
                lines.append("")
            lines.append(f"{speaker}:")
            prev_speaker = speaker
        lines.append(text)

    txt_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return txt_path


def json_to_md(json_path: Path, outdir: Optional[Path]=None) -> Optional[Path]:
    lifelog, lifelog_id = _load(json_path)
    md_path = _target(json_path, lifelog_id, "md", outdir)
    if _already_done(md_path):
        return None

    markdown = lifelog.get("markdown")
    if not markdown:
        raise ConversionError(f"No markdown field present in lifelog {lifelog_id}.")

    # newline="" keeps the normalized "\n" as-is on every platform
    with open(md_path, "w", encoding="utf-8", newline="") as f:
        f.write(_LINE_BREAK.sub("\n", markdown))
    return md_path


CONVERTERS: Dict[str, Callable[[Path, Optional[Path]], Optional[Path]]] = {
    "vtt": json_to_vtt,
    "txt": json_to_txt,
    "md": json_to_md,
}


@dataclass
class ConvertSummary:
    converted: int = 0
    skipped: int = 0
    errors: int = 0


def expand_patterns(patterns: Iterable[str]) -> List[Path]:
    """Expands globs (``**`` included), keeping first-seen order and dropping repeats."""
    files: Dict[str, None] = {}
    for pattern in patterns:
        for match in sorted(glob.glob(pattern, recursive=True)):
            if Path(match).is_file():
                files.setdefault(match, None)
    return [Path(p) for p in files]


def convert_files(files: List[Path], fmt: str, outdir: Optional[Path]=None,
                  quiet: bool=False) -> ConvertSummary:
    converter = CONVERTERS[fmt]
    description = f"{fmt.upper()} conversion"
    summary = ConvertSummary()
    total = len(files)

    progress_print(f"Starting {description} for {plural(total, 'file')}...", quiet)
    for idx, path in enumerate(files, 1):
        prefix = f"[{idx}/{total}] {Path(path).stem}"
        try:
            output_path = converter(path, outdir)
        except json.JSONDecodeError as e:
            warn(f"{prefix}: Error parsing JSON: {e} – skipping.")
            summary.errors += 1
            continue
        except (ConversionError, OSError, TypeError, ValueError) as e:
            warn(f"{prefix}: Error processing: {e} – skipping.")
            summary.errors += 1
            continue

        if output_path is None:
            progress_print(f"{prefix}: Skipped existing .{fmt}", quiet)
            summary.skipped += 1
        else:
            progress_print(f"{prefix}: Saved -> {output_path}", quiet)
            summary.converted += 1

    print("---")
    print(f"{description} complete.")
    print(f"Successfully converted: {summary.converted}")
    print(f"Skipped (already exist): {summary.skipped}")
    print(f"Errors: {summary.errors}")
    print("---")
    return summary


def run_convert(fmt: str, patterns: List[str], outdir: Optional[Path]=None,
                quiet: bool=False) -> ConvertSummary:
    """
    Validates the format, expands ``patterns`` and converts every match.

    Raises ValueError for an unknown format, an empty pattern list or patterns
    that match nothing.
    """
    fmt = (fmt or "").lower()
    if fmt not in CONVERTERS:
        raise ValueError(f"Unknown conversion type {fmt!r} – expected md, txt, or vtt")
    if not patterns:
        raise ValueError(f"Provide transcript JSON files or glob patterns for {fmt.upper()} conversion.")

    files = expand_patterns(patterns)
    if not files:
        raise ValueError(f"No files matched the given pattern(s) for {fmt.upper()} conversion.")

    if outdir:
        Path(outdir).mkdir(parents=True, exist_ok=True)
    return convert_files(files, fmt, outdir, quiet)
