"""
Field extraction from fetched documents.

Extraction rules are configuration, not code: each provider maps a field
to a page, a pattern and a named capture group. The functions here are
pure and know nothing about any particular provider.
"""

import html
import logging
import re
from datetime import date
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional

from dateutil import parser as date_parser
from pydantic import BaseModel, Field

from reelindex.media.models import FieldId, ImageInfo, PersonInfo
from reelindex.scrapers.base import FieldAbsent

logger = logging.getLogger(__name__)

TEXT_FIELDS = frozenset({
    FieldId.TITLE,
    FieldId.ORIGINAL_TITLE,
    FieldId.PLOT,
    FieldId.TAGLINE,
})

STRING_LIST_FIELDS = frozenset({
    FieldId.DIRECTOR,
    FieldId.COUNTRY,
    FieldId.GENRE,
    FieldId.STUDIO,
})

IMAGE_LIST_FIELDS = frozenset({FieldId.POSTER, FieldId.FANART})

HOUR_MINUTE_PATTERN = re.compile(r"(?P<hour>\d+)\s*h\s*(?P<minute>\d+)", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"\d+(?:[.,]\d+)?")
TAG_PATTERN = re.compile(r"<[^>]+>")


class FollowRule(BaseModel):
    """
    Second hop for fields whose values live on linked detail pages.

    The parent rule's pattern captures a reference (group ref_group) on the
    listing page; each reference fills the url template ({id} is the
    candidate id, {ref} the reference) and pattern is applied to the page
    fetched from it.
    """

    url: str
    pattern: str
    ref_group: str = "ref"
    group: Optional[str] = None
    ignore_case: bool = False
    dotall: bool = False
    limit: Optional[int] = None

    def detail_rule(self, parent: "ExtractionRule") -> "ExtractionRule":
        return ExtractionRule(
            page=parent.page,
            pattern=self.pattern,
            group=self.group,
            occurrence=parent.occurrence,
            ignore_case=self.ignore_case,
            dotall=self.dotall,
            scale=parent.scale,
            exclude=parent.exclude,
        )


class ExtractionRule(BaseModel):
    """Where and how to find one field in a provider's pages."""

    page: str = "main"
    pattern: str
    group: Optional[str] = None
    # When a scalar pattern matches more than once the last match wins by
    # default; some provider pages repeat a value in a stale context first.
    occurrence: Literal["first", "last"] = "last"
    scope: Optional[str] = None
    ignore_case: bool = False
    dotall: bool = False
    scale: float = 1.0
    exclude: List[str] = Field(default_factory=list)
    follow: Optional[FollowRule] = None

    @property
    def flags(self) -> int:
        flags = 0
        if self.ignore_case:
            flags |= re.IGNORECASE
        if self.dotall:
            flags |= re.DOTALL
        return flags


@lru_cache(maxsize=512)
def _compile(pattern: str, flags: int) -> "re.Pattern[str]":
    return re.compile(pattern, flags)


def clean_text(value: str) -> str:
    """Unescape entities, strip tags and collapse whitespace."""
    value = html.unescape(value)
    value = TAG_PATTERN.sub("", value)
    return " ".join(value.split())


def _group_value(match: "re.Match[str]", group: Optional[str]) -> str:
    if group:
        return match.group(group) or ""
    if match.re.groups:
        return match.group(1) or ""
    return match.group(0)


def _apply_scope(document: str, rule: ExtractionRule) -> Optional[str]:
    if not rule.scope:
        return document
    scoped = _compile(rule.scope, rule.flags).search(document)
    return scoped.group(0) if scoped else None


def parse_year(text: str) -> int:
    match = re.search(r"\d{4}", text)
    if not match:
        raise ValueError(f"No year in {text!r}")
    return int(match.group(0))


def parse_rating(text: str, scale: float = 1.0) -> float:
    match = NUMBER_PATTERN.search(text)
    if not match:
        raise ValueError(f"No rating in {text!r}")
    return round(float(match.group(0).replace(",", ".")) * scale, 2)


def parse_runtime(text: str) -> int:
    """Minutes from "1h52min", "1 h 52" or a bare "112"."""
    hm = HOUR_MINUTE_PATTERN.search(text)
    if hm:
        return int(hm.group("hour")) * 60 + int(hm.group("minute"))
    match = re.search(r"\d+", text)
    if not match:
        raise ValueError(f"No runtime in {text!r}")
    return int(match.group(0))


def parse_date(text: str) -> date:
    return date_parser.parse(text, fuzzy=True).date()


def _groups(match: "re.Match[str]") -> Dict[str, Optional[str]]:
    return match.groupdict()


def _convert_scalar(field: FieldId, match: "re.Match[str]", rule: ExtractionRule) -> Any:
    groups = _groups(match)

    if field == FieldId.RUNTIME and groups.get("hour") is not None and groups.get("minute") is not None:
        return int(groups["hour"] or 0) * 60 + int(groups["minute"] or 0)

    if field == FieldId.RELEASE_DATE and all(groups.get(k) for k in ("year", "month", "day")):
        return date(int(groups["year"]), int(groups["month"]), int(groups["day"]))

    text = clean_text(_group_value(match, rule.group))
    if not text or text in rule.exclude:
        return FieldAbsent

    if field in TEXT_FIELDS:
        return text
    if field == FieldId.YEAR:
        return parse_year(text)
    if field == FieldId.RATING:
        return parse_rating(text, rule.scale)
    if field == FieldId.RUNTIME:
        return parse_runtime(text)
    if field == FieldId.RELEASE_DATE:
        return parse_date(text)
    raise ValueError(f"{field.value} is not a scalar field")


def _person(match: "re.Match[str]", rule: ExtractionRule) -> Optional[PersonInfo]:
    groups = _groups(match)
    name = groups.get("actor") or groups.get("name")
    if name is None:
        name = _group_value(match, rule.group)
    name = clean_text(name or "")
    if not name:
        return None
    image = groups.get("image")
    if image and image in rule.exclude:
        image = None
    return PersonInfo(
        name=name,
        role=clean_text(groups.get("role") or ""),
        image_url=image or None,
    )


def _extract_list(field: FieldId, document: str, rule: ExtractionRule) -> Any:
    pattern = _compile(rule.pattern, rule.flags)
    values: List[Any] = []
    seen = set()

    for match in pattern.finditer(document):
        if field == FieldId.CAST:
            value = _person(match, rule)
            key = value.name if value else None
        elif field in IMAGE_LIST_FIELDS:
            group = rule.group or ("url" if "url" in match.re.groupindex else None)
            url = html.unescape(_group_value(match, group)).strip()
            value = ImageInfo(url=url) if url and url not in rule.exclude else None
            key = url
        else:
            text = clean_text(_group_value(match, rule.group))
            value = text if text and text not in rule.exclude else None
            key = text

        if value is not None and key not in seen:
            seen.add(key)
            values.append(value)

    return values if values else FieldAbsent


def extract_field(field: FieldId, rule: ExtractionRule, document: str) -> Any:
    """
    Extract one typed field value from a document.

    Returns:
        The typed value, or FieldAbsent when nothing matches.

    Raises:
        ValueError: If a match was found but could not be converted.
    """
    scoped = _apply_scope(document, rule)
    if scoped is None:
        return FieldAbsent

    if field == FieldId.CAST or field in STRING_LIST_FIELDS or field in IMAGE_LIST_FIELDS:
        return _extract_list(field, scoped, rule)

    matches = list(_compile(rule.pattern, rule.flags).finditer(scoped))
    if not matches:
        return FieldAbsent

    chosen = matches[-1] if rule.occurrence == "last" else matches[0]
    return _convert_scalar(field, chosen, rule)


def follow_references(rule: ExtractionRule, document: str) -> List[str]:
    """
    Detail-page references captured on a listing page, de-duplicated.

    Raises:
        IndexError: If the pattern has no group named rule.follow.ref_group.
    """
    if rule.follow is None:
        return []
    scoped = _apply_scope(document, rule)
    if scoped is None:
        return []

    refs: List[str] = []
    for match in _compile(rule.pattern, rule.flags).finditer(scoped):
        ref = (match.group(rule.follow.ref_group) or "").strip()
        if ref and ref not in refs:
            refs.append(ref)
            if rule.follow.limit is not None and len(refs) >= rule.follow.limit:
                break
    return refs


def merge_followed(field: FieldId, values: List[Any]) -> Any:
    """Combine values extracted from several detail pages, in page order."""
    present = [v for v in values if v is not FieldAbsent]
    if not present:
        return FieldAbsent
    if field == FieldId.CAST or field in STRING_LIST_FIELDS or field in IMAGE_LIST_FIELDS:
        merged: List[Any] = []
        for value in present:
            for item in value:
                if item not in merged:
                    merged.append(item)
        return merged
    return present[0]
