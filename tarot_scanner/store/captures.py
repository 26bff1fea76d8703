"""Capture sample storage for the local matcher.

Reference photos are owned by the capture store; the recognition pipeline
only reads them. Two stores are provided: a SQLite store that the CLI import
command writes to, and a read-only directory store for photo folders.
"""

import sqlite3
import time
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Union

from ..core.constants import IMAGE_EXTENSIONS, IMPORT_REVERSED_HINTS, IMPORT_UPRIGHT_HINTS
from ..core.types import Card, CaptureRecord, CaptureSample, Orientation
from ..labels import build_lookup, match_label, normalize, parse_label
from ..utils.config import ensure_capture_dir
from ..utils.error_handler import CaptureStoreError
from ..utils.log import get_logger
from ..utils.retry import retry

logger = get_logger(__name__)


class CaptureStore(Protocol):
    """Anything that can list capture records grouped by card."""

    def get_all_card_captures(self) -> List[CaptureRecord]:
        ...


def _group(samples: Iterable[CaptureSample]) -> List[CaptureRecord]:
    records: Dict[int, CaptureRecord] = {}
    for sample in samples:
        record = records.setdefault(sample.card_id, CaptureRecord(card_id=sample.card_id))
        record.samples(sample.orientation).append(sample)
        record.updated_at = max(record.updated_at, sample.captured_at)
    return [records[card_id] for card_id in sorted(records)]


def _is_busy(error: Exception) -> bool:
    """Another connection holds the database lock; worth another try."""
    message = str(getattr(error, "details", {}).get("error", error)).lower()
    return "locked" in message or "busy" in message


# The CLI import and a running recognizer can hold the same database file
_retry_when_busy = retry(
    max_attempts=3, base_delay=0.1, max_delay=1.0,
    exceptions=(CaptureStoreError,), should_retry=_is_busy, logger=logger,
)


class SqliteCaptureStore:
    """SQLite-backed capture store."""

    def __init__(self, db_path: Optional[str] = None):
        self.logger = get_logger(__name__)
        self.db_path = ensure_capture_dir(db_path)
        self._init_database()

    def _init_database(self):
        """Initialize SQLite database with required tables."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute(
                    """
                    CREATE TABLE IF NOT EXISTS card_captures (
                        id INTEGER PRIMARY KEY AUTOINCREMENT,
                        card_id INTEGER NOT NULL,
                        orientation TEXT NOT NULL,
                        blob BLOB NOT NULL,
                        captured_at REAL NOT NULL
                    )
                """
                )
                conn.execute(
                    "CREATE INDEX IF NOT EXISTS idx_card_captures_card ON card_captures(card_id)"
                )
                conn.commit()
                self.logger.debug("Capture database initialized", db_path=str(self.db_path))

        except sqlite3.Error as e:
            self.logger.error("Error initializing capture database", error=str(e))
            raise CaptureStoreError(
                "Could not initialize capture database",
                details={"db_path": str(self.db_path), "error": str(e)},
            ) from e

    @_retry_when_busy
    def add_capture(
        self,
        card_id: int,
        orientation: Orientation,
        blob: bytes,
        captured_at: Optional[float] = None,
    ) -> int:
        """Insert one capture sample and return its row id."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.execute(
                    """
                    INSERT INTO card_captures (card_id, orientation, blob, captured_at)
                    VALUES (?, ?, ?, ?)
                """,
                    (card_id, orientation.value, sqlite3.Binary(blob), captured_at or time.time()),
                )
                conn.commit()
                self.logger.debug(
                    "Capture inserted", card_id=card_id, orientation=orientation.value
                )
                return cursor.lastrowid

        except sqlite3.Error as e:
            self.logger.error("Error inserting capture", card_id=card_id, error=str(e))
            raise CaptureStoreError(
                "Could not store capture", details={"card_id": card_id, "error": str(e)}
            ) from e

    @_retry_when_busy
    def _select(self, where: str = "", params: tuple = ()) -> List[CaptureSample]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                cursor = conn.execute(
                    f"SELECT card_id, orientation, blob, captured_at FROM card_captures {where} "
                    "ORDER BY card_id, captured_at, id",
                    params,
                )
                return [
                    CaptureSample(
                        card_id=row["card_id"],
                        orientation=Orientation(row["orientation"]),
                        blob=bytes(row["blob"]),
                        captured_at=row["captured_at"],
                    )
                    for row in cursor.fetchall()
                ]

        except sqlite3.Error as e:
            self.logger.error("Error reading captures", error=str(e))
            raise CaptureStoreError("Could not read captures", details={"error": str(e)}) from e

    def get_card_capture(self, card_id: int) -> Optional[CaptureRecord]:
        records = _group(self._select("WHERE card_id = ?", (card_id,)))
        return records[0] if records else None

    def get_all_card_captures(self) -> List[CaptureRecord]:
        records = _group(self._select())
        self.logger.debug("Retrieved capture records", count=len(records))
        return records

    def delete_card_capture(self, card_id: int) -> int:
        """Remove every sample of a card; returns how many rows went away."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                result = conn.execute("DELETE FROM card_captures WHERE card_id = ?", (card_id,))
                conn.commit()
                return result.rowcount

        except sqlite3.Error as e:
            raise CaptureStoreError(
                "Could not delete captures", details={"card_id": card_id, "error": str(e)}
            ) from e

    def count(self) -> int:
        with sqlite3.connect(self.db_path) as conn:
            return conn.execute("SELECT COUNT(*) FROM card_captures").fetchone()[0]


class DirectoryCaptureStore:
    """Read-only store over a folder of reference photos.

    Two layouts are understood::

        root/<card>/<orientation>/<any name>.jpg   e.g. 00_fool/invertido/1.jpg
        root/<card label>.jpg                      e.g. 00_fool_invertido.jpg

    Card folders and labels go through label reconciliation, so ids, padded
    ids, card names and image names all work.
    """

    def __init__(self, root: Union[str, Path], cards: Optional[Iterable[Card]] = None):
        self.logger = get_logger(__name__)
        self.root = Path(root)
        self.lookup = build_lookup(cards or [])

    def _card_id(self, alias: str) -> Optional[int]:
        card = self.lookup.get(normalize(alias))
        if card is not None:
            return card.id
        return int(alias) if alias.isdigit() else None

    def _resolve(self, path: Path) -> Optional[tuple]:
        relative = path.relative_to(self.root)
        parts = relative.parts
        if len(parts) == 3:
            card_id = self._card_id(parts[0])
            orientation = parse_label(parts[1]).orientation
            return (card_id, orientation) if card_id is not None else None
        if len(parts) == 1:
            matched = match_label(path.stem, self.lookup)
            if matched.card is not None:
                return matched.card.id, matched.orientation
        return None

    def get_all_card_captures(self) -> List[CaptureRecord]:
        if not self.root.is_dir():
            self.logger.warning("Capture directory not found", root=str(self.root))
            return []

        samples = []
        for path in sorted(self.root.rglob("*")):
            if not path.is_file() or path.suffix.lower() not in IMAGE_EXTENSIONS:
                continue
            resolved = self._resolve(path)
            if resolved is None:
                self.logger.debug("Skipping unrecognized capture file", path=str(path))
                continue
            card_id, orientation = resolved
            samples.append(
                CaptureSample(
                    card_id=card_id,
                    orientation=orientation,
                    blob=path.read_bytes(),
                    captured_at=path.stat().st_mtime,
                )
            )
        return _group(samples)


@dataclass
class ImportSummary:
    upright: int = 0
    reversed: int = 0
    unknown_orientation: int = 0
    errors: int = 0

    @property
    def imported(self) -> int:
        return self.upright + self.reversed


def infer_orientation(name: str) -> Optional[Orientation]:
    """Orientation hinted by a file name, or None when it says nothing."""
    normalized = normalize(name)
    if any(hint in normalized for hint in IMPORT_REVERSED_HINTS):
        return Orientation.REVERSED
    if any(hint in normalized for hint in IMPORT_UPRIGHT_HINTS):
        return Orientation.UPRIGHT
    return None


def import_captures(
    store: SqliteCaptureStore,
    card_id: int,
    paths: Iterable[Union[str, Path]],
    orientation: Optional[Orientation] = None,
) -> ImportSummary:
    """Import image files and ZIP archives as captures of one card.

    Loose files use ``orientation`` when given, else their name. ZIP entries
    always go by their entry name; entries without a hint are skipped.
    """
    logger = get_logger(__name__)
    summary = ImportSummary()

    def _add(name: str, blob: bytes, fixed: Optional[Orientation]):
        target = fixed or infer_orientation(name)
        if target is None:
            summary.unknown_orientation += 1
            return
        store.add_capture(card_id, target, blob)
        if target is Orientation.REVERSED:
            summary.reversed += 1
        else:
            summary.upright += 1

    for raw_path in paths:
        path = Path(raw_path)
        try:
            if path.suffix.lower() == ".zip":
                with zipfile.ZipFile(path) as archive:
                    for entry in archive.infolist():
                        if entry.is_dir() or Path(entry.filename).suffix.lower() not in IMAGE_EXTENSIONS:
                            continue
                        _add(entry.filename, archive.read(entry), None)
            elif path.suffix.lower() in IMAGE_EXTENSIONS:
                _add(path.name, path.read_bytes(), orientation)
            else:
                summary.errors += 1
                logger.warning("Unsupported capture file", path=str(path))
        except (OSError, zipfile.BadZipFile) as e:
            summary.errors += 1
            logger.error("Failed to import capture", path=str(path), error=str(e))

    logger.info(
        "Captures imported",
        card_id=card_id,
        upright=summary.upright,
        reversed=summary.reversed,
        unknown_orientation=summary.unknown_orientation,
        errors=summary.errors,
    )
    return summary
