"""
Record types produced by the pairing parser.

Pairing -> Flight -> Layover mirror one trip block of a crew pairing
document.  MalformedField / IncompleteTrailingPairing / ParseResult carry
the conditions the parser reports back to its caller.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional


# ==================== PAIRING RECORDS ====================

@dataclass
class Layover:
    hotel: str = ""
    duration: str = ""

    def to_dict(self) -> dict:
        return {"hotel": self.hotel, "duration": self.duration}


@dataclass
class Flight:
    """One leg of a pairing, as printed on a single flight line."""
    aircraft: str
    flight_number: str
    departure: str
    arrival: str
    departure_time: str
    arrival_time: str
    flight_time: str
    duty_time: Optional[str] = None
    days_of_week: List[int] = field(default_factory=list)
    has_layover: bool = False
    layover: Optional[Layover] = None

    @property
    def awaiting_hotel(self) -> bool:
        return self.layover is not None and not self.layover.hotel

    def to_dict(self) -> dict:
        return {
            "aircraft": self.aircraft,
            "flight_number": self.flight_number,
            "departure": self.departure,
            "arrival": self.arrival,
            "departure_time": self.departure_time,
            "arrival_time": self.arrival_time,
            "flight_time": self.flight_time,
            "duty_time": self.duty_time,
            "days_of_week": list(self.days_of_week),
            "has_layover": self.has_layover,
            "layover": self.layover.to_dict() if self.layover else None,
        }


@dataclass
class Pairing:
    """One trip block, terminated in the document by a line starting with '='."""
    pairing_number: str = ""
    operating_dates: str = ""
    flights: List[Flight] = field(default_factory=list)
    layovers: int = 0
    block_time: str = ""
    tafb: str = ""
    total_allowance: str = ""
    total_flight_time: str = ""

    def is_empty(self) -> bool:
        return not (
            self.pairing_number or self.operating_dates or self.flights
            or self.block_time or self.tafb or self.total_allowance
            or self.total_flight_time
        )

    def flights_per_day(self) -> int:
        """Highest number of legs operating on any single weekday."""
        per_day: Counter = Counter()
        for flight in self.flights:
            per_day.update(flight.days_of_week)
        return max(per_day.values()) if per_day else 0

    def to_dict(self) -> dict:
        return {
            "pairing_number": self.pairing_number,
            "operating_dates": self.operating_dates,
            "flights": [f.to_dict() for f in self.flights],
            "layovers": self.layovers,
            "block_time": self.block_time,
            "tafb": self.tafb,
            "total_allowance": self.total_allowance,
            "total_flight_time": self.total_flight_time,
            "flights_per_day": self.flights_per_day(),
        }


# ==================== PARSE CONDITIONS ====================

@dataclass(frozen=True)
class MalformedField:
    pairing_number: str
    field: str
    value: str
    reason: str

    def to_dict(self) -> dict:
        return {
            "pairing_number": self.pairing_number,
            "field": self.field,
            "value": self.value,
            "reason": self.reason,
        }


@dataclass
class IncompleteTrailingPairing:
    """Pairing still accumulating when the input ran out (no '=' line after it)."""
    pairing: Pairing
    line_count: int

    def to_dict(self) -> dict:
        return {
            "pairing": self.pairing.to_dict(),
            "line_count": self.line_count,
        }


@dataclass
class ParseResult:
    pairings: List[Pairing] = field(default_factory=list)
    issues: List[MalformedField] = field(default_factory=list)
    trailing: Optional[IncompleteTrailingPairing] = None
    limit_reached: bool = False

    def to_dict(self) -> dict:
        return {
            "pairings": [p.to_dict() for p in self.pairings],
            "total_pairings": len(self.pairings),
            "issues": [i.to_dict() for i in self.issues],
            "trailing": self.trailing.to_dict() if self.trailing else None,
            "limit_reached": self.limit_reached,
        }
