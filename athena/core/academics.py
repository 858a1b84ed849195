"""
Academic rules: terms, credit caps, grade quality points and score arithmetic.
"""

from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Optional, Tuple

from .enums import TermType
from .exceptions import ValidationError


QUALITY_POINTS: Dict[str, Decimal] = {
    'A': Decimal("4.0"), 'A-': Decimal("3.7"),
    'B+': Decimal("3.3"), 'B': Decimal("3.0"), 'B-': Decimal("2.7"),
    'C+': Decimal("2.3"), 'C': Decimal("2.0"), 'C-': Decimal("1.7"),
    'D+': Decimal("1.3"), 'D': Decimal("1.0"),
    'F': Decimal("0.0"),
}


@dataclass(frozen=True)
class Term:
    """An academic period identified by (semester, year).

    The semester is kept in one canonical spelling: "fall", "FALL " and
    "Fall" name the same term.
    """
    semester: str
    year: int

    def __post_init__(self):
        if isinstance(self.semester, str):
            object.__setattr__(self, 'semester', " ".join(self.semester.split()).title())

    def validate(self) -> None:
        if not self.semester or not str(self.semester).strip():
            raise ValidationError("Semester is required")
        if not isinstance(self.year, int) or not 1900 <= self.year <= 2100:
            raise ValidationError("Year must be between 1900 and 2100", details={'year': self.year})

    def __str__(self) -> str:
        return f"{self.semester} {self.year}"


@dataclass
class TermRules:
    """Maps a term to its type and the credit cap for that type."""
    credit_caps: Dict[str, int] = field(default_factory=lambda: {
        TermType.STANDARD.value: 18,
        TermType.COMPRESSED.value: 10,
    })
    compressed_semesters: Tuple[str, ...] = ("Summer",)

    def term_type(self, term: Term) -> TermType:
        compressed = {s.strip().lower() for s in self.compressed_semesters}
        if term.semester.strip().lower() in compressed:
            return TermType.COMPRESSED
        return TermType.STANDARD

    def credit_cap(self, term: Term) -> int:
        return self.credit_caps[self.term_type(term).value]


def validate_grade(grade: Optional[str]) -> Optional[str]:
    """Return the grade unchanged if recognized; None passes through."""
    if grade is None:
        return None
    if grade not in QUALITY_POINTS:
        raise ValidationError(f"Unknown letter grade: {grade}",
                              details={'grade': grade, 'allowed': list(QUALITY_POINTS)})
    return grade


def compute_gpa(graded: Iterable[Tuple[str, int]]) -> Tuple[Optional[float], int]:
    """GPA over (letter grade, credits) pairs, rounded half-up to 2 places.

    Unrecognized grades are skipped. Returns (gpa, graded_credits); gpa is
    None when nothing was graded.
    """
    total_points = Decimal(0)
    total_credits = 0
    for grade, credits in graded:
        points = QUALITY_POINTS.get(grade)
        if points is None:
            continue
        total_points += points * credits
        total_credits += credits

    if total_credits == 0:
        return None, 0
    gpa = (total_points / total_credits).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return float(gpa), total_credits


def percentage_score(correct: int, total: int) -> int:
    """round(correct / total * 100) with halves rounded up, in exact integer arithmetic."""
    if total <= 0:
        raise ValidationError("Cannot score a quiz with no questions")
    return (200 * correct + total) // (2 * total)


def normalize_answer(answer: str) -> str:
    return str(answer).strip().casefold()
