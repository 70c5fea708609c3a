"""
Tablet text protocol.

A payload is a run of forms separated by ``||``. Inside a form, fields are
separated by ``|``: a fixed header (see ``ProtocolLayout``) followed by one
``itemID,value`` field per record. A payload may open with a version marker
segment (``v1`` or ``v2``) that selects the header layout for every form after
it; without one the caller's default layout applies.

All functions here are pure; nothing touches the filesystem or the store.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Optional

from scoutwatch.domain.models import Form, FormType, ProtocolLayout, Record
from scoutwatch.exceptions import ParseError

FORM_DELIMITER = "||"
FIELD_DELIMITER = "|"
RECORD_SEPARATOR = ","

# A run of three or more pipes is a form without records (trailing "|") followed by "||".
_FORM_BREAK = re.compile(r"\|{2,}")

# Columns are SQLite INTEGERs.
INT_MIN = -(2**63)
INT_MAX = 2**63 - 1


@dataclass
class DecodeResult:
    layout: ProtocolLayout
    forms: list[Form] = field(default_factory=list)
    errors: list[ParseError] = field(default_factory=list)


def split_forms(payload: str) -> list[str]:
    """
    Form-level split. Any run of two or more pipes ends a form, so the
    trailing ``|`` of a form without records never leaks into the next one.
    Empty segments (leading, doubled or trailing delimiters) are dropped.
    """
    return [segment for segment in _FORM_BREAK.split(payload) if segment]


def split_fields(segment: str) -> list[str]:
    return segment.split(FIELD_DELIMITER)


def parse_record(raw: str, segment: str = "") -> Record:
    """
    ``itemID,value``. Everything after the first comma belongs to the value,
    commas included.
    """
    item_text, sep, value = raw.partition(RECORD_SEPARATOR)
    if not sep:
        raise ParseError(f"record {raw!r} has no item/value separator", segment)
    return Record(item_id=_to_int(item_text, "item id", segment), value=value)


def decode_form(segment: str, layout: ProtocolLayout = ProtocolLayout.A) -> tuple[Form, list[ParseError]]:
    """
    Decode one form segment.

    Header problems raise ``ParseError`` (the whole form is unusable). Bad
    record fields are dropped and returned alongside the form.
    """
    fields = split_fields(segment)
    if len(fields) < layout.header_width:
        raise ParseError(
            f"header needs {layout.header_width} fields for layout {layout.value}, got {len(fields)}",
            segment,
        )

    type_num = _to_int(fields[0], "form type", segment)
    try:
        form_type = FormType(type_num)
    except ValueError:
        raise ParseError(f"unknown form type {type_num}", segment) from None

    flag: Optional[bool] = None
    header = fields[1:layout.header_width]
    if layout is ProtocolLayout.B:
        flag = _to_int(header[0], "flag", segment) != 0
        header = header[1:]
    tablet_text, scout_name, team_text, match_text = header

    form = Form(
        form_type=form_type,
        tablet_num=_to_int(tablet_text, "tablet number", segment),
        scout_name=scout_name,
        team_num=_to_int(team_text, "team number", segment),
        match_num=_to_int(match_text, "match number", segment),
        flag=flag,
    )

    errors: list[ParseError] = []
    for raw in fields[layout.header_width:]:
        if not raw:
            continue
        try:
            form.records.append(parse_record(raw, segment))
        except ParseError as exc:
            errors.append(exc)
    return form, errors


def decode_payload(payload: str, default_layout: ProtocolLayout = ProtocolLayout.A) -> DecodeResult:
    segments = split_forms(payload)
    layout = default_layout
    if segments:
        marked = ProtocolLayout.from_marker(segments[0])
        if marked is not None:
            layout = marked
            segments = segments[1:]

    result = DecodeResult(layout=layout)
    for segment in segments:
        try:
            form, record_errors = decode_form(segment, layout)
        except ParseError as exc:
            result.errors.append(exc)
            continue
        result.forms.append(form)
        result.errors.extend(record_errors)
    return result


def encode_header(form: Form, layout: ProtocolLayout = ProtocolLayout.A) -> list[str]:
    header = [str(int(form.form_type))]
    if layout is ProtocolLayout.B:
        header.append("1" if form.flag else "0")
    header.extend([str(form.tablet_num), form.scout_name, str(form.team_num), str(form.match_num)])
    return header


def encode_record(record: Record) -> str:
    return f"{record.item_id}{RECORD_SEPARATOR}{record.value}"


def encode_form(form: Form, layout: ProtocolLayout = ProtocolLayout.A) -> str:
    """Header fields, a trailing ``|``, then the records in order."""
    head = FIELD_DELIMITER.join(encode_header(form, layout)) + FIELD_DELIMITER
    return head + FIELD_DELIMITER.join(encode_record(r) for r in form.records)


def encode_payload(
    forms: Iterable[Form],
    layout: ProtocolLayout = ProtocolLayout.A,
    with_marker: Optional[bool] = None,
) -> str:
    if with_marker is None:
        with_marker = layout is not ProtocolLayout.A
    parts = [layout.marker] if with_marker else []
    parts.extend(encode_form(f, layout) for f in forms)
    return FORM_DELIMITER.join(parts) + FORM_DELIMITER


def _to_int(text: str, name: str, segment: str) -> int:
    try:
        value = int(text.strip())
    except ValueError:
        raise ParseError(f"{name} {text!r} is not a number", segment) from None
    if not INT_MIN <= value <= INT_MAX:
        raise ParseError(f"{name} {text!r} is out of range", segment)
    return value
