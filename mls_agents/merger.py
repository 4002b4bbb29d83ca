from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Sequence

from mls_agents.records import ContactRecord, dedupe_first, dedupe_last


@dataclass(frozen=True)
class MergeSummary:
    count_before: int
    count_after: int
    updated_count: int

    @property
    def new_count(self) -> int:
        return self.count_after - self.count_before


def _overlay(target: ContactRecord, source: ContactRecord) -> None:
    # Blank incoming values never erase what is already known.
    for field in fields(ContactRecord):
        if field.name == "name":
            continue
        value = getattr(source, field.name)
        if value and value.strip():
            setattr(target, field.name, value)


def merge(
    existing: Sequence[ContactRecord] | None,
    incoming: Sequence[ContactRecord],
) -> tuple[list[ContactRecord], MergeSummary]:
    batch = [record.copy() for record in dedupe_last(incoming)]

    if existing is None:
        return batch, MergeSummary(count_before=0, count_after=len(batch), updated_count=0)

    data = [record.copy() for record in existing]
    positions: dict[str, int] = {}
    for position, record in enumerate(data):
        positions.setdefault(record.key, position)

    updated_count = 0
    for record in batch:
        position = positions.get(record.key)
        if position is None:
            positions[record.key] = len(data)
            data.append(record)
            continue
        _overlay(data[position], record)
        updated_count += 1

    updated = dedupe_first(data)
    return updated, MergeSummary(
        count_before=len(existing),
        count_after=len(updated),
        updated_count=updated_count,
    )
