from __future__ import annotations

import csv
import io
import logging
from dataclasses import dataclass, replace
from typing import Iterable

logger = logging.getLogger(__name__)


@dataclass
class ContactRecord:
    name: str = ""
    company: str = ""
    email: str = ""
    office: str = ""
    direct_line: str = ""
    cell: str = ""
    fax: str = ""
    personal_fax: str = ""

    @property
    def key(self) -> str:
        return (self.name or "").strip()

    @property
    def has_email(self) -> bool:
        return bool((self.email or "").strip())

    def copy(self) -> ContactRecord:
        return replace(self)

    def to_row(self) -> dict[str, str]:
        return {header: getattr(self, attr) for header, attr in COLUMNS}

    @classmethod
    def from_row(cls, row: dict[str, str | None]) -> ContactRecord:
        return cls(**{attr: row.get(header) or "" for header, attr in COLUMNS})


# Header order of every CSV this project writes.
COLUMNS: tuple[tuple[str, str], ...] = (
    ("Name", "name"),
    ("Company", "company"),
    ("Email", "email"),
    ("Office", "office"),
    ("DirectLine", "direct_line"),
    ("Cell", "cell"),
    ("Fax", "fax"),
    ("PersonalFax", "personal_fax"),
)
HEADERS: list[str] = [header for header, _ in COLUMNS]


def encode(records: Iterable[ContactRecord]) -> bytes:
    buffer = io.StringIO(newline="")
    writer = csv.DictWriter(buffer, fieldnames=HEADERS, quoting=csv.QUOTE_ALL)
    writer.writeheader()
    for record in records:
        writer.writerow(record.to_row())
    return buffer.getvalue().encode("utf-8")


def decode(data: bytes) -> list[ContactRecord]:
    text = data.decode("utf-8-sig")
    reader = csv.DictReader(io.StringIO(text, newline=""))
    missing = [header for header in HEADERS if header not in (reader.fieldnames or [])]
    if reader.fieldnames and missing:
        logger.warning("Dataset is missing columns %s; reading them as empty", missing)
    return [ContactRecord.from_row(row) for row in reader]


def dedupe_last(records: Iterable[ContactRecord]) -> list[ContactRecord]:
    """One record per name; later records replace earlier ones in place."""
    by_key: dict[str, ContactRecord] = {}
    for record in records:
        by_key[record.key] = record
    return list(by_key.values())


def dedupe_first(records: Iterable[ContactRecord]) -> list[ContactRecord]:
    deduped: list[ContactRecord] = []
    seen: set[str] = set()
    for record in records:
        if record.key in seen:
            continue
        seen.add(record.key)
        deduped.append(record)
    return deduped


class RecordStore:
    """Records scraped during the current run."""

    def __init__(self) -> None:
        self._records: list[ContactRecord] = []

    def __len__(self) -> int:
        return len(self._records)

    @property
    def records(self) -> list[ContactRecord]:
        return list(self._records)

    def add(self, record: ContactRecord) -> bool:
        if not record.key or not record.has_email:
            return False
        self._records.append(record)
        return True

    def batch(self) -> list[ContactRecord]:
        return dedupe_last(self._records)
