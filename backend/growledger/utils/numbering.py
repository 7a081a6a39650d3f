"""Control-number formatting and parsing.

Formats (must match existing records exactly):
  plant:        A-{SCOPE}-{YYYY}-{NNNNN}
  clone:        CL-{SCOPE}-{YYYY}-{NNNNN}
  harvest:      H-{SCOPE}-{YYYY}-{NNNNN}
  extract:      EX-{YYYY}-{NNNNN}
  distribution: D-{YYYY}-{NNNNN}

{SCOPE} is the upper-cased initials of the environment name at issuance
time, {YYYY} the issuance year, {NNNNN} the zero-padded counter value.
This module is pure; allocating the counter value is SequenceIssuer's job.
"""

from __future__ import annotations

import enum
import re
import unicodedata
from dataclasses import dataclass

from growledger.middleware.exceptions import LedgerValidationError

SEQ_WIDTH = 5


class ControlNumberKind(str, enum.Enum):
    PLANT = "plant"
    CLONE = "clone"
    HARVEST = "harvest"
    EXTRACT = "extract"
    DISTRIBUTION = "distribution"


PREFIXES = {
    ControlNumberKind.PLANT: "A",
    ControlNumberKind.CLONE: "CL",
    ControlNumberKind.HARVEST: "H",
    ControlNumberKind.EXTRACT: "EX",
    ControlNumberKind.DISTRIBUTION: "D",
}

KIND_BY_PREFIX = {prefix: kind for kind, prefix in PREFIXES.items()}

# Which counter each kind advances.  Clones share the plant sequence.
COUNTER_NAMES = {
    ControlNumberKind.PLANT: "plant",
    ControlNumberKind.CLONE: "plant",
    ControlNumberKind.HARVEST: "harvest",
    ControlNumberKind.EXTRACT: "extract",
    ControlNumberKind.DISTRIBUTION: "distribution",
}

# Kinds whose numbers carry the environment's initials
SCOPED_KINDS = {
    ControlNumberKind.PLANT,
    ControlNumberKind.CLONE,
    ControlNumberKind.HARVEST,
}

_CONTROL_NUMBER_RE = re.compile(
    r"^(?P<prefix>[A-Z]+)-(?:(?P<scope>[A-Z0-9]+)-)?(?P<year>\d{4})-(?P<seq>\d{5})$"
)
_SCOPE_TAG_RE = re.compile(r"[A-Z0-9]+")


class InvalidControlNumber(LedgerValidationError, ValueError):
    def __init__(self, message: str):
        super().__init__(message, error_code="INVALID_CONTROL_NUMBER")


@dataclass(frozen=True)
class ControlNumber:
    kind: ControlNumberKind
    scope: str | None
    year: int
    sequence: int

    def __post_init__(self):
        if not 0 < self.sequence < 10 ** SEQ_WIDTH:
            raise InvalidControlNumber(
                f"Sequence {self.sequence} does not fit in {SEQ_WIDTH} digits"
            )
        if not 1000 <= self.year <= 9999:
            raise InvalidControlNumber(f"Year {self.year} is not four digits")
        if (self.kind in SCOPED_KINDS) != (self.scope is not None):
            raise InvalidControlNumber(
                f"{self.kind.value} numbers {'require' if self.kind in SCOPED_KINDS else 'take no'} scope tag"
            )
        if self.scope is not None and not _SCOPE_TAG_RE.fullmatch(self.scope):
            raise InvalidControlNumber(f"Scope tag {self.scope!r} must be A-Z or 0-9")

    @property
    def prefix(self) -> str:
        return PREFIXES[self.kind]

    def __str__(self) -> str:
        return format_control_number(self)


def _ascii_initial(word: str) -> str:
    folded = unicodedata.normalize("NFKD", word[0])
    return "".join(ch for ch in folded if ch.isascii() and ch.isalnum())


def scope_tag_for(display_name: str) -> str:
    """Initials of the whitespace-separated words, upper-cased ASCII.

    "Main Tent" -> "MT", "greenhouse 2" -> "G2", "Área Norte" -> "AN".
    Accents are stripped; initials with no ASCII letter or digit are skipped.
    """
    tag = "".join(_ascii_initial(word) for word in display_name.split()).upper()
    if not tag:
        raise InvalidControlNumber(f"Cannot derive a scope tag from {display_name!r}")
    return tag


def format_control_number(number: ControlNumber) -> str:
    seq = f"{number.sequence:0{SEQ_WIDTH}d}"
    if number.scope is not None:
        return f"{number.prefix}-{number.scope}-{number.year}-{seq}"
    return f"{number.prefix}-{number.year}-{seq}"


def parse_control_number(text: str) -> ControlNumber:
    """Inverse of format_control_number.

    >>> parse_control_number("H-MT-2025-00007")
    ControlNumber(kind=<ControlNumberKind.HARVEST: 'harvest'>, scope='MT', year=2025, sequence=7)
    """
    match = _CONTROL_NUMBER_RE.match(text)
    if not match:
        raise InvalidControlNumber(f"Not a control number: {text!r}")
    kind = KIND_BY_PREFIX.get(match.group("prefix"))
    if kind is None:
        raise InvalidControlNumber(f"Unknown control-number prefix in {text!r}")
    return ControlNumber(
        kind=kind,
        scope=match.group("scope"),
        year=int(match.group("year")),
        sequence=int(match.group("seq")),
    )
