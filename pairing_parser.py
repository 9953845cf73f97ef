"""
pairing_parser.py
=================
Pure-regex parser for crew pairing documents.

Input is the plain text of a pairing PDF, already split into lines by
pdf_text.extract_text().  Output is a ParseResult holding one Pairing per
'='-terminated block, in document order.

Document layout (after the 3-line banner):

    OPERATES/OPER- T5001   ...   15APR - 25APR
    1 A320 100 YYZ 0815 BGI 1315 500
    67 A320 101 BGI 1415 YUL 1815 400 1030 2519
              Le Centre Sheraton Montreal Ho
    BLOCK/H-VOL  900 ...
    TOTAL ALLOWANCE -$  123.45
    TAFB/PTEB  3200 ...   TOTAL -  900
    ==================================================

Each line is offered to rule tiers in a fixed order (header, flight,
block/allowance, tafb/total, layover hotel).  Field setters are idempotent:
once a field is set, later lines carrying the same marker leave it alone.
Lines that match nothing are skipped.

A trailing block with no '=' line after it is never emitted; it is reported
as ParseResult.trailing instead.
"""

import logging
import re
from typing import Callable, Iterable, List, Optional, Tuple

from diagnostics import DebugCollector
from pairing_types import (
    Flight,
    IncompleteTrailingPairing,
    Layover,
    MalformedField,
    Pairing,
    ParseResult,
)

logger = logging.getLogger(__name__)

# Fixed banner at the top of every pairing document
HEADER_LINES = 3
BOUNDARY_PREFIX = "="


# ══════════════════════════════════════════════════════════════════════════════
#  REGEX PATTERNS
#  Written with \s, \w and \d, then expanded by _compile(): \w and \d stay
#  ASCII ([A-Za-z0-9_], [0-9]) while \s also covers Unicode spaces such as
#  NBSP, which PDF text extraction often emits between columns.
# ══════════════════════════════════════════════════════════════════════════════

_SPACE = r"[\t\n\v\f\r\x20\u00a0\u1680\u2000-\u200a\u2028\u2029\u202f\u205f\u3000\ufeff]"
_WORD = r"[A-Za-z0-9_]"
_DIGIT = r"[0-9]"


def _compile(pattern: str, flags: int = 0) -> "re.Pattern[str]":
    pattern = pattern.replace(r"\s", _SPACE).replace(r"\w", _WORD).replace(r"\d", _DIGIT)
    return re.compile(pattern, flags)


_MARK_OPERATES = "OPERATES/OPER-"

_RE_OPERATING_DATES   = _compile(r"\w{5}\s+-\s+\w{5}")
_RE_PAIRING_NUMBER    = _compile(r"T\d+")
_RE_BLOCK_TIME        = _compile(r"BLOCK/H-VOL\s+(\d+)")
# Unescaped '.': any separator is captured, validate_pairing() checks it.
_RE_ALLOWANCE         = _compile(r"TOTAL ALLOWANCE -\$\s+(\d+.\d+)")
_RE_TAFB              = _compile(r"TAFB/PTEB\s+(\d+)")
_RE_TOTAL_FLIGHT_TIME = _compile(r"TOTAL -\s+(\d+)")

# ── Flight line ───────────────────────────────────────────────────────────────
# 67  A320  101  BGI 1415  YUL 1815  400  1030  2519
# mask type  flt  dep time  arr time  blk  duty  layover
_RE_FLIGHT = _compile(
    r"""
    (?P<days>\d+)\s+
    (?P<aircraft>\w+)\s+
    (?P<flight_number>\d+)\s+
    (?P<departure>\w{3})\s(?P<departure_time>\d{4})\s+
    (?P<arrival>\w{3})\s(?P<arrival_time>\d{4})\s+
    (?P<flight_time>\d+)
    (?:\s+(?P<duty_time>\d+))?
    (?:\s+(?P<layover>\d+))?
    """,
    re.VERBOSE,
)

# ── Hotel name: words framed by column padding (2+ spaces each side) ─────────
_RE_LAYOVER = _compile(r"\s{2,}(\w+(?:\s\w+)*)\s{2,}")

# field → (marker token that must appear in the line, pattern, group)
_FIELD_RULES = {
    "operating_dates":   (_MARK_OPERATES,    _RE_OPERATING_DATES,   0),
    "pairing_number":    (_MARK_OPERATES,    _RE_PAIRING_NUMBER,    0),
    "block_time":        ("BLOCK/H-VOL",     _RE_BLOCK_TIME,        1),
    "total_allowance":   ("TOTAL ALLOWANCE", _RE_ALLOWANCE,         1),
    "tafb":              ("TAFB/PTEB",       _RE_TAFB,              1),
    "total_flight_time": ("TOTAL -",         _RE_TOTAL_FLIGHT_TIME, 1),
}


# ══════════════════════════════════════════════════════════════════════════════
#  ACCUMULATOR
# ══════════════════════════════════════════════════════════════════════════════

class PairingAccumulator:
    """Builder for the pairing currently being read. Replaced at every boundary."""

    def __init__(self) -> None:
        self.pairing = Pairing()
        self.line_count = 0

    def is_set(self, name: str) -> bool:
        return bool(getattr(self.pairing, name))

    def set_once(self, name: str, value: str) -> bool:
        """Set a scalar field unless it already holds a value."""
        if self.is_set(name):
            return False
        setattr(self.pairing, name, value)
        return True

    def add_flight(self, flight: Flight) -> None:
        self.pairing.flights.append(flight)
        if flight.has_layover:
            self.pairing.layovers += 1

    @property
    def last_flight(self) -> Optional[Flight]:
        return self.pairing.flights[-1] if self.pairing.flights else None

    def is_empty(self) -> bool:
        return self.pairing.is_empty()

    def build(self) -> Pairing:
        return self.pairing


# ══════════════════════════════════════════════════════════════════════════════
#  RECORD PARSERS
# ══════════════════════════════════════════════════════════════════════════════

def is_boundary(line: str) -> bool:
    """A line starting with '=' closes the current pairing."""
    return line.startswith(BOUNDARY_PREFIX)


def parse_flight_line(line: str) -> Optional[Flight]:
    """Build a Flight from a flight line, or None when the line is not one."""
    m = _RE_FLIGHT.search(line)
    if not m:
        return None

    g = m.groupdict()
    layover_duration = g["layover"]
    return Flight(
        aircraft=g["aircraft"],
        flight_number=g["flight_number"],
        departure=g["departure"],
        arrival=g["arrival"],
        departure_time=g["departure_time"],
        arrival_time=g["arrival_time"],
        flight_time=g["flight_time"],
        duty_time=g["duty_time"],
        days_of_week=[int(ch) for ch in g["days"]],
        has_layover=layover_duration is not None,
        layover=Layover(hotel="", duration=layover_duration) if layover_duration is not None else None,
    )


# ══════════════════════════════════════════════════════════════════════════════
#  RULES
#  Every rule has the signature (line, accumulator, dbg) -> bool and answers
#  "did this line set something / get consumed?".
# ══════════════════════════════════════════════════════════════════════════════

Rule = Callable[[str, PairingAccumulator, DebugCollector], bool]


def _field_rule(name: str) -> Rule:
    marker, pattern, group = _FIELD_RULES[name]

    def rule(line: str, acc: PairingAccumulator, dbg: DebugCollector) -> bool:
        if acc.is_set(name) or marker not in line:
            return False
        m = pattern.search(line)
        if not m:
            return False
        return acc.set_once(name, m.group(group))

    rule.__name__ = f"set_{name}"
    return rule


def _flight_rule(line: str, acc: PairingAccumulator, dbg: DebugCollector) -> bool:
    flight = parse_flight_line(line)
    if flight is None:
        return False
    acc.add_flight(flight)
    return True


def _layover_rule(line: str, acc: PairingAccumulator, dbg: DebugCollector) -> bool:
    """
    Attach a hotel name to the latest flight's pending layover.

    The line counts as consumed whenever the hotel pattern matches, even if
    there is nothing to attach it to.
    """
    m = _RE_LAYOVER.search(line)
    if not m:
        return False

    hotel = m.group(1).strip()
    last = acc.last_flight
    if last is not None and last.awaiting_hotel:
        last.layover.hotel = hotel
        return True

    if last is not None:
        if last.layover is not None:
            reason = f"layover already has hotel '{last.layover.hotel}'"
        else:
            reason = "latest flight has no layover"
        msg = (
            f"Ambiguous hotel line '{hotel}' in pairing "
            f"{acc.pairing.pairing_number or '?'} ({reason}); ignored"
        )
        logger.debug(msg)
        dbg.warn(msg)
    return True


# ══════════════════════════════════════════════════════════════════════════════
#  CLASSIFIER
# ══════════════════════════════════════════════════════════════════════════════

class LineClassifier:
    """
    Offers a line to each rule tier in priority order.

    All rules of a tier are run against the line (fields in one tier are
    independent of each other); the first tier where any rule reports a hit
    consumes the line and its name is returned.
    """

    TIERS: Tuple[Tuple[str, Tuple[Rule, ...]], ...] = (
        ("pairing_header",   (_field_rule("operating_dates"), _field_rule("pairing_number"))),
        ("flight",           (_flight_rule,)),
        ("block_allowance",  (_field_rule("block_time"), _field_rule("total_allowance"))),
        ("tafb_total",       (_field_rule("tafb"), _field_rule("total_flight_time"))),
        ("layover_hotel",    (_layover_rule,)),
    )

    def classify(self, line: str, acc: PairingAccumulator,
                 dbg: Optional[DebugCollector] = None) -> Optional[str]:
        dbg = dbg or DebugCollector(enabled=False)
        for tier, rules in self.TIERS:
            hits = [rule(line, acc, dbg) for rule in rules]
            if any(hits):
                return tier
        return None


# ══════════════════════════════════════════════════════════════════════════════
#  VALIDATION
# ══════════════════════════════════════════════════════════════════════════════

_RE_DIGITS = re.compile(r"\d+", re.ASCII)
_RE_AMOUNT = re.compile(r"\d+\.\d+", re.ASCII)

_NUMERIC_PAIRING_FIELDS = ("block_time", "tafb", "total_flight_time")


def _is_clock(value: str) -> bool:
    if not value or not _RE_DIGITS.fullmatch(value) or len(value) != 4:
        return False
    hour, minute = int(value[:2]), int(value[2:])
    if hour == 24:
        return minute == 0
    return hour < 24 and minute <= 59


def validate_pairing(pairing: Pairing) -> List[MalformedField]:
    """Report fields whose captured text is not the number/clock it should be."""
    issues: List[MalformedField] = []
    number = pairing.pairing_number

    def bad(field: str, value, reason: str):
        issues.append(MalformedField(number, field, str(value), reason))

    for name in _NUMERIC_PAIRING_FIELDS:
        value = getattr(pairing, name)
        if value and not _RE_DIGITS.fullmatch(value):
            bad(name, value, "expected digits")

    if pairing.total_allowance and not _RE_AMOUNT.fullmatch(pairing.total_allowance):
        bad("total_allowance", pairing.total_allowance, "expected amount like 123.45")

    for i, flight in enumerate(pairing.flights):
        prefix = f"flights[{i}]"
        for name in ("flight_number", "flight_time", "duty_time"):
            value = getattr(flight, name)
            if value is not None and not _RE_DIGITS.fullmatch(value):
                bad(f"{prefix}.{name}", value, "expected digits")
        for name in ("departure_time", "arrival_time"):
            value = getattr(flight, name)
            if not _is_clock(value):
                bad(f"{prefix}.{name}", value, "expected HHMM clock time")

        out_of_range = [d for d in flight.days_of_week if not 1 <= d <= 7]
        if out_of_range:
            bad(f"{prefix}.days_of_week", flight.days_of_week,
                f"weekday out of range 1..7: {out_of_range}")
        if len(set(flight.days_of_week)) != len(flight.days_of_week):
            bad(f"{prefix}.days_of_week", flight.days_of_week, "duplicate weekday")

        if flight.layover is not None and not _RE_DIGITS.fullmatch(flight.layover.duration):
            bad(f"{prefix}.layover.duration", flight.layover.duration, "expected digits")

    return issues


# ══════════════════════════════════════════════════════════════════════════════
#  DRIVER
# ══════════════════════════════════════════════════════════════════════════════

class PairingFileParser:
    """
    Turns the lines of a pairing document into a ParseResult.

    Usage:
        result = PairingFileParser().parse(lines, limit=50)
        for pairing in result.pairings:
            ...

    One instance may be shared between threads; all state of a parse lives
    in the call.
    """

    def __init__(self, header_lines: int = HEADER_LINES):
        self.header_lines = header_lines
        self.classifier = LineClassifier()

    def parse(self, lines: Iterable[str], limit: Optional[int] = None,
              dbg: Optional[DebugCollector] = None) -> ParseResult:
        if limit is not None and limit < 0:
            raise ValueError(f"limit must be >= 0, got {limit}")

        dbg = dbg or DebugCollector(enabled=False)
        result = ParseResult()

        if limit == 0:
            result.limit_reached = True
            return result

        cleaned = [line for line in lines if line]
        body = cleaned[self.header_lines:]
        dbg.step(f"{len(cleaned)} non-empty lines, {len(body)} after banner")

        acc = PairingAccumulator()
        for line_no, line in enumerate(body, start=self.header_lines + 1):
            if is_boundary(line):
                pairing = acc.build()
                result.pairings.append(pairing)
                dbg.step(
                    f"line {line_no}: boundary → pairing {pairing.pairing_number or '?'} "
                    f"({len(pairing.flights)} flights)"
                )
                acc = PairingAccumulator()
                if limit is not None and len(result.pairings) >= limit:
                    result.limit_reached = True
                    break
                continue

            tier = self.classifier.classify(line, acc, dbg)
            if tier is not None:
                acc.line_count += 1
            dbg.record_rule(tier, line_no, line)
        else:
            if not acc.is_empty():
                result.trailing = IncompleteTrailingPairing(acc.build(), acc.line_count)
                logger.warning(
                    "Document ended inside pairing %s (%d flights) with no '=' line; "
                    "pairing not emitted",
                    acc.pairing.pairing_number or "?", len(acc.pairing.flights),
                )
                dbg.warn("Trailing pairing without boundary dropped")

        for pairing in result.pairings:
            issues = validate_pairing(pairing)
            if issues:
                logger.warning(
                    "Pairing %s has %d malformed field(s): %s",
                    pairing.pairing_number or "?", len(issues),
                    ", ".join(i.field for i in issues),
                )
                result.issues.extend(issues)

        logger.debug(
            "Parsed %d pairing(s), %d issue(s), limit_reached=%s",
            len(result.pairings), len(result.issues), result.limit_reached,
        )
        return result


# ══════════════════════════════════════════════════════════════════════════════
#  ENTRY POINTS
# ══════════════════════════════════════════════════════════════════════════════

def parse_pairing_file(lines: Iterable[str], limit: Optional[int] = None) -> List[Pairing]:
    """Completed pairings of a document, in document order."""
    return PairingFileParser().parse(lines, limit=limit).pairings
