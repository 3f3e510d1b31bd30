"""Session log → markdown transcript conversion.

Each session log becomes one document at
``<output_dir>/<project>/<YYYY-MM-DD>-<id8>.md``. The filename depends only on
the first record's date and session id, so converting an unchanged log again
rewrites the same file with the same bytes.
"""

from __future__ import annotations

import json
import logging
import re
from datetime import date
from pathlib import Path

from qmd_history.core.errors import ConversionError, OutputDirectoryError, atomic_write
from qmd_history.core.models import ConvertResult, ProjectGroup, SessionHeader, TranscriptDocument

logger = logging.getLogger(__name__)

ID_PREFIX_LEN = 8

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")

_ROLE_HEADINGS = {"user": "User", "assistant": "Assistant"}


def error_marker(line_num: int) -> str:
    return f"*[Error parsing event on line {line_num}]*"


def _first_record(log_path: Path) -> dict | None:
    """First non-blank line parsed as a JSON object, or None if it isn't one."""
    with open(log_path, encoding="utf-8", errors="replace") as f:
        for line in f:
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError:
                return None
            return record if isinstance(record, dict) else None
    return None


def read_header(log_path: Path, default_slug: str = "untitled", today: date | None = None) -> SessionHeader:
    """Session id, slug and date from the first record of a session log.

    Missing values degrade: id falls back to the filename stem, slug to
    ``default_slug`` and date to today.
    """
    record = _first_record(log_path) or {}

    session_id = record.get("sessionId")
    if not isinstance(session_id, str) or not session_id:
        session_id = ""

    slug = record.get("slug")
    if not isinstance(slug, str) or not slug.strip():
        slug = default_slug

    timestamp = record.get("timestamp")
    day = timestamp[:10] if isinstance(timestamp, str) else ""
    if not _DATE_RE.match(day):
        day = (today or date.today()).isoformat()

    id_source = session_id or log_path.stem
    return SessionHeader(
        session_id=session_id or log_path.stem,
        slug=slug.strip(),
        date=day,
        id_prefix=id_source[:ID_PREFIX_LEN],
    )


def extract_text(content) -> str:
    """Text of a message payload.

    A plain string is returned as-is. For a list of fragments, only
    ``{"type": "text"}`` fragments are kept, joined with newlines; tool calls,
    tool results, images and thinking blocks are dropped.
    """
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = [
            block["text"]
            for block in content
            if isinstance(block, dict)
            and block.get("type") == "text"
            and isinstance(block.get("text"), str)
        ]
        return "\n".join(parts)
    return ""


def render_event(record: dict) -> str | None:
    """Markdown block for one user/assistant record; None for anything else."""
    role = record.get("type")
    heading = _ROLE_HEADINGS.get(role) if isinstance(role, str) else None
    if heading is None:
        return None
    message = record.get("message")
    content = message.get("content") if isinstance(message, dict) else None
    text = extract_text(content).strip()
    if not text:
        return None
    return f"## {heading}\n\n{text}\n"


def render_header(header: SessionHeader, origin_path: str, title: str) -> str:
    return (
        f"# {title}: {header.slug}\n"
        f"\n"
        f"- **Date**: {header.date}\n"
        f"- **Session ID**: {header.session_id}\n"
        f"- **Project**: {origin_path}\n"
        f"\n"
        f"---\n"
    )


def render_body(log_path: Path) -> tuple[list[str], list[int], int]:
    """Render every record of a session log.

    Returns (blocks, error_lines, non_blank_lines). A line that is not a JSON
    object becomes an inline error marker; the rest of the log still renders.
    """
    blocks: list[str] = []
    error_lines: list[int] = []
    non_blank = 0
    with open(log_path, encoding="utf-8", errors="replace") as f:
        for line_num, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            non_blank += 1
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                logger.debug("Malformed JSON at line %d in %s: %s", line_num, log_path.name, e)
                record = None
            if not isinstance(record, dict):
                error_lines.append(line_num)
                blocks.append(f"{error_marker(line_num)}\n")
                continue
            try:
                block = render_event(record)
            except (TypeError, AttributeError, KeyError) as e:
                logger.debug("Unrenderable event at line %d in %s: %s", line_num, log_path.name, e)
                error_lines.append(line_num)
                blocks.append(f"{error_marker(line_num)}\n")
                continue
            if block is not None:
                blocks.append(block)
    return blocks, error_lines, non_blank


def convert_session(
    log_path: Path,
    project: str,
    origin_path: str,
    output_dir: Path,
    title: str = "Claude Conversation",
    default_slug: str = "untitled",
    today: date | None = None,
) -> TranscriptDocument | None:
    """Render one session log. Nothing is written here.

    Returns None for a log with no records.

    Raises:
        ConversionError: the log cannot be read.
    """
    try:
        header = read_header(log_path, default_slug=default_slug, today=today)
        blocks, error_lines, non_blank = render_body(log_path)
    except OSError as e:
        raise ConversionError(f"cannot read {log_path}: {e}") from e

    if non_blank == 0:
        return None

    content = render_header(header, origin_path, title)
    for block in blocks:
        content += "\n" + block

    return TranscriptDocument(
        project=project,
        source=log_path,
        path=output_dir / project / header.filename,
        header=header,
        content=content,
        error_lines=error_lines,
    )


def write_document(document: TranscriptDocument) -> bool:
    """Write a document unless the file already holds identical content.

    Returns True if the file was (re)written.
    """
    path = document.path
    if path.exists():
        try:
            if path.read_text(encoding="utf-8") == document.content:
                return False
        except (OSError, UnicodeDecodeError):
            pass
    atomic_write(path, document.content)
    return True


def ensure_output_dir(path: Path) -> None:
    """Create an output directory.

    Raises:
        OutputDirectoryError: the directory cannot be created.
    """
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise OutputDirectoryError(f"cannot create output directory {path}: {e}") from e


def convert_project(
    group: ProjectGroup,
    output_dir: Path,
    dry_run: bool = False,
    title: str = "Claude Conversation",
    default_slug: str = "untitled",
    today: date | None = None,
    run_logger=None,
) -> ConvertResult:
    """Convert every session log of a project group.

    A session that cannot be read is logged and skipped; its siblings still
    convert. In dry-run mode nothing is created or written and the intended
    paths are collected in ``ConvertResult.planned``.

    Raises:
        OutputDirectoryError: the project output directory cannot be created.
    """
    project_dir = output_dir / group.name
    result = ConvertResult(project=group.name, output_dir=project_dir)

    if not dry_run:
        ensure_output_dir(project_dir)

    for log_path in group.sessions:
        try:
            document = convert_session(
                log_path,
                project=group.name,
                origin_path=group.origin_path,
                output_dir=output_dir,
                title=title,
                default_slug=default_slug,
                today=today,
            )
        except ConversionError as e:
            logger.warning("Skipping session %s: %s", log_path.name, e)
            result.failed.append(log_path)
            if run_logger is not None:
                run_logger.session_failed(group.name, log_path.name, str(e))
            continue

        if document is None:
            logger.debug("Empty session log %s", log_path.name)
            continue

        if document.has_errors:
            logger.warning(
                "Session %s has %d malformed line(s): %s",
                log_path.name,
                len(document.error_lines),
                document.error_lines,
            )
            result.degraded.append(document.path)

        if dry_run:
            result.planned.append(document.path)
        else:
            try:
                write_document(document)
            except OSError as e:
                logger.warning("Cannot write %s: %s", document.path, e)
                result.failed.append(log_path)
                if run_logger is not None:
                    run_logger.session_failed(group.name, log_path.name, str(e))
                continue
            result.written.append(document.path)

        if run_logger is not None:
            run_logger.session_converted(group.name, document.path.name, degraded=document.has_errors)

    return result
