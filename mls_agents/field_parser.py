from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence

from mls_agents.records import ContactRecord


@dataclass(frozen=True)
class FieldRule:
    prefix: str
    field: str
    strip: tuple[str, ...]

    def matches(self, line: str) -> bool:
        return line.startswith(self.prefix)

    def extract(self, line: str) -> str:
        for keyword in self.strip:
            line = line.replace(keyword, "", 1)
        return line.strip()


# Evaluated in order, first match wins. "personal fax" lines never reach the
# "fax" rule because matching is by prefix.
FIELD_RULES: tuple[FieldRule, ...] = (
    FieldRule("office", "office", ("office",)),
    FieldRule("direct", "direct_line", ("direct", "line")),
    FieldRule("cell", "cell", ("cell",)),
    FieldRule("fax", "fax", ("fax",)),
    FieldRule("personal", "personal_fax", ("personal", "fax")),
)


def _email_from(line: str) -> str:
    return line.split(";", 1)[0].strip()


def _classify(line: str, rules: Sequence[FieldRule]) -> FieldRule | None:
    for rule in rules:
        if rule.matches(line):
            return rule
    return None


def parse(
    name_line: str,
    detail_lines: Sequence[str],
    rules: Sequence[FieldRule] = FIELD_RULES,
) -> ContactRecord:
    """Build a contact record from an agent page's name line and detail block.

    The first detail line is the company. A trailing line containing "@" is
    taken as the email and removed; any other unclassified line containing
    "@" also sets the email (lower-cased). Lines matching no rule are dropped.
    """
    record = ContactRecord(name=(name_line or "").split(",", 1)[0].strip())

    lines = list(detail_lines)
    if lines:
        record.company = lines.pop(0).strip()

    if lines:
        last = lines[-1].strip()
        if "@" in last:
            record.email = _email_from(last)
            lines.pop()

    for line in lines:
        lowered = line.strip().lower()
        rule = _classify(lowered, rules)
        if rule is not None:
            setattr(record, rule.field, rule.extract(lowered))
        elif "@" in lowered:
            record.email = _email_from(lowered)

    return record
