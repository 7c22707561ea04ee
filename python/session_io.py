"""
Saving and loading documents.

Layout:

    {
        "title": "my session",
        "root": <grammar>,
        "meta": <grammar>,
        "grammars": {"root": <grammar>, "root-A1": <grammar>, ...}
    }

A grammar is {"name", "style", "kind"}; kind carries a "type" tag:

    {"type": "Input", "value": "..."}
    {"type": "Lookup", "query": "...", "target": null | {"type": "Cell"|"Defn", "coordinate": "meta-A3"}}
    {"type": "Grid", "children": [[1, 1], [2, 1]]}
    {"type": "Defn", "label": "...", "coordinate": "meta-A3", "rules": [["name", "meta-A3-B1"]]}

The payload shape is described by the pydantic records below. Addresses are
plain strings in the records and are parsed into Coordinates afterwards.
Row heights and column widths are display state and are not saved.
"""

from __future__ import annotations

import logging
from dataclasses import asdict
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictInt, StrictStr, ValidationError

from coordinate import Coordinate
from grammar import CellLookup, Defn, DefnLookup, Grammar, Grid, Input, Kind, Lookup, Style
from session import (
    InvariantViolation,
    Session,
    SheetRules,
    ensure_dimensions,
    validate_session,
)

logger = logging.getLogger(__name__)

__all__ = [
    "GrammarRecord",
    "SessionRecord",
    "dumps_session",
    "grammar_from_dict",
    "grammar_to_dict",
    "loads_session",
    "session_from_dict",
    "session_to_dict",
]


# =============================================================================
# Payload records
# =============================================================================


Index = Annotated[StrictInt, Field(ge=1)]
Pair = Annotated[list[Index], Field(min_length=2, max_length=2)]
Rule = Annotated[list[StrictStr], Field(min_length=2, max_length=2)]  # [name, address]


class StyleRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    border_color: StrictStr = "grey"
    border_collapse: StrictBool = False
    font_weight: StrictInt = 400
    font_color: StrictStr = "black"
    display_override: StrictStr = ""


class LookupTargetRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["Cell", "Defn"]
    coordinate: StrictStr


class InputRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["Input"] = "Input"
    value: StrictStr


class LookupRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["Lookup"] = "Lookup"
    query: StrictStr
    target: LookupTargetRecord | None = None


class GridRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["Grid"] = "Grid"
    children: list[Pair]


class DefnRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    type: Literal["Defn"] = "Defn"
    label: StrictStr
    coordinate: StrictStr
    rules: list[Rule] = Field(default_factory=list)


KindRecord = Annotated[
    InputRecord | LookupRecord | GridRecord | DefnRecord,
    Field(discriminator="type"),
]


class GrammarRecord(BaseModel):
    """One stored grammar."""

    model_config = ConfigDict(extra="forbid")

    name: StrictStr
    style: StyleRecord
    kind: KindRecord


class SessionRecord(BaseModel):
    """A whole saved document."""

    model_config = ConfigDict(extra="forbid")

    title: StrictStr
    root: GrammarRecord
    meta: GrammarRecord
    grammars: dict[StrictStr, GrammarRecord]


def _problems(error: ValidationError, where: str = "") -> list[str]:
    """Flatten pydantic errors into 'location: message' lines."""
    problems = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail["loc"])
        if where:
            location = f"{where}.{location}" if location else where
        problems.append(f"{location or 'payload'}: {detail['msg']}")
    return problems


# =============================================================================
# Encoding
# =============================================================================


def _kind_to_record(kind: Kind) -> InputRecord | LookupRecord | GridRecord | DefnRecord:
    match kind:
        case Input(value=value):
            return InputRecord(value=value)
        case Lookup(query=query, target=target):
            match target:
                case None:
                    encoded = None
                case CellLookup(coordinate=coord):
                    encoded = LookupTargetRecord(type="Cell", coordinate=str(coord))
                case DefnLookup(coordinate=coord):
                    encoded = LookupTargetRecord(type="Defn", coordinate=str(coord))
            return LookupRecord(query=query, target=encoded)
        case Grid(children=children):
            return GridRecord(children=[[row, col] for row, col in children])
        case Defn(label=label, coordinate=coord, rules=rules):
            return DefnRecord(
                label=label,
                coordinate=str(coord),
                rules=[[name, str(rule_coord)] for name, rule_coord in rules],
            )
    raise ValueError(f"Unknown grammar kind: {kind!r}")


def _grammar_to_record(grammar: Grammar) -> GrammarRecord:
    return GrammarRecord(
        name=grammar.name,
        style=StyleRecord(**asdict(grammar.style)),
        kind=_kind_to_record(grammar.kind),
    )


def _session_to_record(session: Session) -> SessionRecord:
    return SessionRecord(
        title=session.title,
        root=_grammar_to_record(session.root),
        meta=_grammar_to_record(session.meta),
        grammars={
            str(coord): _grammar_to_record(grammar)
            for coord, grammar in sorted(session.grammars.items(), key=lambda kv: kv[0].row_cols)
        },
    )


def grammar_to_dict(grammar: Grammar) -> dict[str, Any]:
    return _grammar_to_record(grammar).model_dump()


def session_to_dict(session: Session) -> dict[str, Any]:
    return _session_to_record(session).model_dump()


def dumps_session(session: Session, indent: int | None = 2) -> str:
    return _session_to_record(session).model_dump_json(indent=indent)


# =============================================================================
# Decoding
# =============================================================================


def _kind_from_record(record: InputRecord | LookupRecord | GridRecord | DefnRecord) -> Kind:
    match record:
        case InputRecord(value=value):
            return Input(value)
        case LookupRecord(query=query, target=None):
            return Lookup(query, None)
        case LookupRecord(query=query, target=LookupTargetRecord(type="Cell", coordinate=address)):
            return Lookup(query, CellLookup(Coordinate.parse(address)))
        case LookupRecord(query=query, target=LookupTargetRecord(type="Defn", coordinate=address)):
            return Lookup(query, DefnLookup(Coordinate.parse(address)))
        case GridRecord(children=children):
            return Grid(tuple((row, col) for row, col in children))
        case DefnRecord(label=label, coordinate=address, rules=rules):
            return Defn(
                label,
                Coordinate.parse(address),
                tuple((name, Coordinate.parse(rule_address)) for name, rule_address in rules),
            )
    raise ValueError(f"Unknown grammar record: {record!r}")


def _grammar_from_record(record: GrammarRecord) -> Grammar:
    return Grammar(
        name=record.name,
        style=Style(**record.style.model_dump()),
        kind=_kind_from_record(record.kind),
    )


def grammar_from_dict(data: Any, where: str = "grammar") -> Grammar:
    """
    Raises:
        InvariantViolation: If data does not have the grammar layout
        MalformedAddress: If an address inside it does not parse
    """
    try:
        record = GrammarRecord.model_validate(data)
    except ValidationError as e:
        raise InvariantViolation(_problems(e, where)) from e
    return _grammar_from_record(record)


def _session_from_record(
    record: SessionRecord,
    previous: Session | None,
    rules: SheetRules,
) -> Session:
    grammars: dict[Coordinate, Grammar] = {}
    spelled: dict[Coordinate, str] = {}
    duplicates: list[str] = []
    for address, grammar_record in record.grammars.items():
        coord = Coordinate.parse(address)
        if coord in spelled:
            duplicates.append(
                f"grammars: '{spelled[coord]}' and '{address}' both name '{coord}'"
            )
            continue
        spelled[coord] = address
        grammars[coord] = _grammar_from_record(grammar_record)
    if duplicates:
        raise InvariantViolation(duplicates)

    session = Session(
        title=record.title,
        root=_grammar_from_record(record.root),
        meta=_grammar_from_record(record.meta),
        grammars=grammars,
        row_heights=dict(previous.row_heights) if previous is not None else {},
        col_widths=dict(previous.col_widths) if previous is not None else {},
    )
    validate_session(session)
    return ensure_dimensions(session, rules=rules)


def session_from_dict(
    data: Any,
    previous: Session | None = None,
    rules: SheetRules = SheetRules(),
) -> Session:
    """
    Build a session from decoded JSON and check every document invariant.

    Dimension tables come from previous (if given); bands the new document
    needs but previous lacks get default sizes.

    Raises:
        InvariantViolation: If the payload is malformed or inconsistent
        MalformedAddress: If an address in the payload does not parse
    """
    try:
        record = SessionRecord.model_validate(data)
    except ValidationError as e:
        raise InvariantViolation(_problems(e)) from e
    return _session_from_record(record, previous, rules)


def loads_session(
    text: str,
    previous: Session | None = None,
    rules: SheetRules = SheetRules(),
) -> Session:
    """
    Parse a saved document.

    Raises:
        InvariantViolation: If the text is not valid JSON or the document is inconsistent
        MalformedAddress: If an address in the document does not parse
    """
    try:
        record = SessionRecord.model_validate_json(text)
    except ValidationError as e:
        raise InvariantViolation(_problems(e)) from e
    session = _session_from_record(record, previous, rules)
    logger.info("loads_session: '%s' with %d grammar(s)", session.title, len(session.grammars))
    return session
