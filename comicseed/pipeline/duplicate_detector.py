#!/usr/bin/env python3
"""
duplicate_detector.py
---------------------
Exact and fuzzy duplicate detection over validated records.

Two independent checks run on records that passed validation:

Exact natural-key check (severity CRITICAL):
    Keys are normalized (slug-like: lowercase, trim, strip characters
    outside ``[a-z0-9-]``; name-like: lowercase, trim, collapse whitespace).
    Records are walked in input order; the first occurrence of a key is
    kept and every later occurrence is dropped and reported as a skipped
    duplicate of the kept one.

Fuzzy title check (severity WARNING, informational):
    Normalized titles of the remaining records are compared pairwise, each
    record only against records not yet grouped, using the edit-distance
    similarity of comicseed.utils.similarity. Groups at or above the
    threshold are reported; nothing is removed, since similar titles are
    not proof of duplication (sequels, translations).

The summary (totals, duplicates skipped, conflicts by field) is derived
from the conflict list alone.

Usage:
    from comicseed.pipeline.duplicate_detector import detect_duplicates

    result = detect_duplicates(comics, key_func=lambda c: c.slug,
                               title_func=lambda c: c.title)
    print(format_duplicate_report(result))
"""
# --- Annotations ---
from __future__ import annotations

# --- Standard library imports ---
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

# --- Local imports ---
from comicseed.core.logging_manager import SeedLogger, safe_logger
from comicseed.utils.normalize import normalize_name, normalize_slug
from comicseed.utils.similarity import similarity

DEFAULT_SIMILARITY_THRESHOLD = 90.0


class Severity(str, Enum):
    """Severity of a duplicate conflict."""

    CRITICAL = "critical"
    WARNING = "warning"


@dataclass
class ConflictMember:
    """
    One record implicated in a conflict.

    Attributes:
        index: Position of the record in the detector input
        key: The record's raw natural key
        title: The record's title/label
        kept: Whether the record stayed in the working set
        similarity: Title similarity to the group's first member (fuzzy only)
        record: The record itself
    """

    index: int
    key: str
    title: str
    kept: bool
    similarity: Optional[float] = None
    record: Any = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "index": self.index,
            "key": self.key,
            "title": self.title,
            "kept": self.kept,
        }
        if self.similarity is not None:
            data["similarity"] = round(self.similarity, 2)
        return data


@dataclass
class DuplicateConflict:
    """
    A group of records sharing a natural key or a near-identical title.

    Attributes:
        field: Field checked ('slug', 'email', 'name', 'title')
        value: Normalized value the members share (first member's, for titles)
        severity: CRITICAL for exact key duplicates, WARNING for fuzzy titles
        members: Every implicated record, in input order
        recommendation: Human-readable advice
    """

    field: str
    value: str
    severity: Severity
    members: List[ConflictMember]
    recommendation: str

    @property
    def kept(self) -> Optional[ConflictMember]:
        """The member that stayed in the working set (exact conflicts)."""
        if self.severity is not Severity.CRITICAL:
            return None
        return next((m for m in self.members if m.kept), None)

    @property
    def skipped(self) -> List[ConflictMember]:
        """Members dropped from the working set."""
        return [m for m in self.members if not m.kept]

    @property
    def similarity(self) -> Optional[float]:
        """Lowest similarity within a fuzzy group."""
        scores = [m.similarity for m in self.members if m.similarity is not None]
        return min(scores) if scores else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "field": self.field,
            "value": self.value,
            "severity": self.severity.value,
            "records": [m.to_dict() for m in self.members],
            "recommendation": self.recommendation,
        }


@dataclass
class DetectionSummary:
    """Counts derived from a conflict list."""

    total: int
    unique: int
    duplicate_count: int
    conflicts_by_field: Dict[str, int]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "unique": self.unique,
            "duplicate_count": self.duplicate_count,
            "conflicts_by_field": dict(self.conflicts_by_field),
        }


@dataclass
class DetectionResult:
    """
    Output of detect_duplicates.

    Attributes:
        unique_records: Working set after the exact check, input order kept
        conflicts: Exact conflicts first, then fuzzy groups
        total: Number of records the detector received
    """

    unique_records: List[Any]
    conflicts: List[DuplicateConflict]
    total: int

    @property
    def has_duplicates(self) -> bool:
        return bool(self.conflicts)

    @property
    def critical(self) -> List[DuplicateConflict]:
        return [c for c in self.conflicts if c.severity is Severity.CRITICAL]

    @property
    def warnings(self) -> List[DuplicateConflict]:
        return [c for c in self.conflicts if c.severity is Severity.WARNING]

    @property
    def summary(self) -> DetectionSummary:
        """Summary computed from the conflicts, without re-scanning input."""
        duplicates = sum(len(c.skipped) for c in self.critical)
        return DetectionSummary(
            total=self.total,
            unique=self.total - duplicates,
            duplicate_count=duplicates,
            conflicts_by_field=dict(Counter(c.field for c in self.conflicts)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "has_duplicates": self.has_duplicates,
            "summary": self.summary.to_dict(),
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


def _default_label(record: Any) -> str:
    for attr in ("title", "name", "email"):
        value = getattr(record, attr, None)
        if isinstance(value, str):
            return value
    return str(record)


def detect_duplicates(
    records: Sequence[Any],
    key_func: Optional[Callable[[Any], Optional[str]]] = None,
    key_field: str = "slug",
    key_normalizer: Callable[[Optional[str]], str] = normalize_slug,
    title_func: Optional[Callable[[Any], Optional[str]]] = None,
    check_titles: bool = True,
    threshold: float = DEFAULT_SIMILARITY_THRESHOLD,
    label_func: Callable[[Any], str] = _default_label,
    entity: str = "records",
    logger: Optional[SeedLogger] = None,
) -> DetectionResult:
    """
    Run the exact key check, then the fuzzy title check.

    Args:
        records: Validated records in a stable, deterministic order
        key_func: Natural key accessor; None disables the exact check
        key_field: Field name reported on exact conflicts
        key_normalizer: normalize_slug for slug-like keys, normalize_name
            (or normalize_email) for name-like keys
        title_func: Title accessor; None disables the fuzzy check
        check_titles: Enable the fuzzy check
        threshold: Minimum similarity percentage for fuzzy grouping
        label_func: Display label of a record in reports
        entity: Plural entity name used in recommendations
        logger: Optional logger (exact skips → critical, fuzzy → warning)

    Returns:
        DetectionResult with the deduplicated working set and conflicts
    """
    log = safe_logger(logger)
    conflicts: List[DuplicateConflict] = []
    unique: List[Any] = []

    # ---- Exact key check ----
    if key_func is not None:
        groups: Dict[str, List[int]] = {}
        order: List[str] = []
        for index, record in enumerate(records):
            key = key_normalizer(key_func(record))
            if not key:
                # Nothing to compare on; the record passes through untouched
                unique.append(record)
                continue
            if key not in groups:
                groups[key] = []
                order.append(key)
                unique.append(record)
            groups[key].append(index)

        for key in order:
            indexes = groups[key]
            if len(indexes) < 2:
                continue
            members = [
                ConflictMember(
                    index=i,
                    key=str(key_func(records[i]) or ""),
                    title=label_func(records[i]),
                    kept=(n == 0),
                    record=records[i],
                )
                for n, i in enumerate(indexes)
            ]
            conflict = DuplicateConflict(
                field=key_field,
                value=key,
                severity=Severity.CRITICAL,
                members=members,
                recommendation=(
                    f'{key_field.capitalize()} "{key}" used by {len(members)} {entity}. '
                    f"Kept first occurrence, skipped {len(members) - 1} duplicates."
                ),
            )
            conflicts.append(conflict)
            log.log_critical(
                f"Duplicate {key_field} skipped",
                {
                    "value": key,
                    "kept": members[0].title,
                    "skipped": [m.title for m in members[1:]],
                },
            )
    else:
        unique = list(records)

    # ---- Fuzzy title check ----
    if check_titles and title_func is not None and len(unique) > 1:
        conflicts.extend(
            _fuzzy_title_groups(unique, title_func, threshold, label_func, key_func, entity, log)
        )

    result = DetectionResult(unique_records=unique, conflicts=conflicts, total=len(records))
    log.log_operation(f"duplicate_detection_{entity}", result.summary.to_dict())
    return result


def _fuzzy_title_groups(
    records: List[Any],
    title_func: Callable[[Any], Optional[str]],
    threshold: float,
    label_func: Callable[[Any], str],
    key_func: Optional[Callable[[Any], Optional[str]]],
    entity: str,
    log: SeedLogger,
) -> List[DuplicateConflict]:
    """Group records whose normalized titles are at least ``threshold`` similar."""
    titles = [normalize_name(title_func(r)) for r in records]
    grouped = set()
    conflicts: List[DuplicateConflict] = []

    for i, anchor in enumerate(titles):
        if not anchor or i in grouped:
            continue
        matches = []
        for j in range(i + 1, len(records)):
            if not titles[j] or j in grouped:
                continue
            score = similarity(anchor, titles[j])
            if score >= threshold:
                matches.append((j, score))

        if not matches:
            continue

        grouped.add(i)
        grouped.update(j for j, _ in matches)
        members = [
            ConflictMember(
                index=i,
                key=str(key_func(records[i]) or "") if key_func else "",
                title=label_func(records[i]),
                kept=True,
                similarity=100.0,
                record=records[i],
            )
        ]
        members.extend(
            ConflictMember(
                index=j,
                key=str(key_func(records[j]) or "") if key_func else "",
                title=label_func(records[j]),
                kept=True,
                similarity=score,
                record=records[j],
            )
            for j, score in matches
        )
        conflict = DuplicateConflict(
            field="title",
            value=anchor,
            severity=Severity.WARNING,
            members=members,
            recommendation=(
                f"{len(members)} {entity} have {threshold:g}%+ similar titles. "
                "Verify these are not duplicates or add distinguishing information."
            ),
        )
        conflicts.append(conflict)
        log.log_warning(
            "Similar titles detected",
            {
                "value": anchor,
                "records": [m.title for m in members],
                "similarity": round(conflict.similarity or 0.0, 2),
            },
        )

    return conflicts


def format_duplicate_report(result: DetectionResult, entity: str = "Comics") -> str:
    """
    Render a detection result as a human-readable report.

    Args:
        result: Output of detect_duplicates
        entity: Capitalized plural entity label

    Returns:
        Multi-line report string
    """
    summary = result.summary
    rule = "=" * 80
    lines: List[str] = [rule, "DUPLICATE DETECTION REPORT", rule, ""]

    lines.append("SUMMARY:")
    lines.append(f"  Total {entity}: {summary.total}")
    lines.append(f"  Unique {entity}: {summary.unique}")
    lines.append(f"  Duplicates Skipped: {summary.duplicate_count}")
    lines.append(f"  Total Conflicts Logged: {len(result.conflicts)}")
    lines.append("")

    if summary.conflicts_by_field:
        lines.append("CONFLICTS BY FIELD:")
        for field_name, count in summary.conflicts_by_field.items():
            lines.append(f"  {field_name}: {count}")
        lines.append("")

    if not result.conflicts:
        lines.append("✅ No duplicates detected!")
        lines.append(rule)
        return "\n".join(lines)

    lines.append("DETAILED CONFLICTS:")
    lines.append("")

    if result.critical:
        lines.append("🔴 CRITICAL (Duplicates Skipped):")
        for idx, conflict in enumerate(result.critical, start=1):
            lines.append(f"  {idx}. {conflict.field.upper()}: {conflict.value}")
            lines.append(
                f"     Affected: {len(conflict.members)} {entity.lower()} "
                f"(kept first, skipped {len(conflict.skipped)})"
            )
            for member in conflict.members:
                status = "✅ KEPT" if member.kept else "⏭️  SKIPPED"
                lines.append(f"     {status}: {member.title} ({member.key})")
            lines.append(f"     💡 {conflict.recommendation}")
            lines.append("")

    if result.warnings:
        lines.append("🟡 WARNINGS (Review Recommended):")
        for idx, conflict in enumerate(result.warnings, start=1):
            lines.append(f"  {idx}. {conflict.field.upper()}: {conflict.value}")
            lines.append(f"     Affected: {len(conflict.members)} {entity.lower()}")
            for member in conflict.members:
                score = f" [{member.similarity:.0f}%]" if member.similarity is not None else ""
                lines.append(f"     - {member.title} ({member.key}){score}")
            lines.append(f"     💡 {conflict.recommendation}")
            lines.append("")

    lines.append(rule)
    return "\n".join(lines)
