import math
from typing import Any, Optional

from pydantic import BaseModel

from ..models.db_models import NOTE_MAX_LENGTH, SubjectTotal
from .errors import InvalidValue

# Lecture count assumed for a catalog subject without a default_total.
DEFAULT_TOTAL = 20

# Largest value the INTEGER total column can hold.
MAX_TOTAL = 2**31 - 1


class TotalProjection(BaseModel):
    """Read-only display form of a SubjectTotal."""
    subject: str
    count: int
    total: int
    capped: int
    percent: Optional[int] = None
    at_max: bool = False


def project_total(row: SubjectTotal) -> TotalProjection:
    """
    capped = min(count, total) when total > 0, otherwise count.
    percent is rounded half up and is None for an uncapped subject.
    """
    if row.total > 0:
        capped = min(row.count, row.total)
        percent = math.floor(100 * capped / row.total + 0.5)
    else:
        capped = row.count
        percent = None
    return TotalProjection(
        subject=row.subject,
        count=row.count,
        total=row.total,
        capped=capped,
        percent=percent,
        at_max=row.total > 0 and row.count >= row.total,
    )


def coerce_total(value: Any) -> int:
    """
    Accepts a finite, non-negative number (or numeric string) and floors it.
    Booleans, None, NaN, infinities, negatives and values above MAX_TOTAL
    raise InvalidValue.
    """
    if value is None or isinstance(value, bool):
        raise InvalidValue("Total must be a non-negative number.")
    if isinstance(value, int):
        number = value
    else:
        try:
            number = float(str(value).strip()) if isinstance(value, str) else float(value)
        except (TypeError, ValueError) as e:
            raise InvalidValue("Total must be a non-negative number.") from e
        if not math.isfinite(number):
            raise InvalidValue("Total must be a finite number.")
    if number < 0:
        raise InvalidValue("Total must be a non-negative number.")
    total = int(math.floor(number))
    if total > MAX_TOTAL:
        raise InvalidValue(f"Total must be at most {MAX_TOTAL}.")
    return total


def normalize_note(note: Optional[str]) -> Optional[str]:
    """Trims the note; blank notes become None, notes over the limit raise InvalidValue."""
    if note is None:
        return None
    note = note.strip()
    if not note:
        return None
    if len(note) > NOTE_MAX_LENGTH:
        raise InvalidValue(f"Note must be at most {NOTE_MAX_LENGTH} characters.")
    return note
