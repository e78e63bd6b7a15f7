import re
from datetime import date
from typing import List, Optional

_PART_RE = re.compile(r"[0-9]+")


def _ints(parts: List[str]) -> Optional[List[int]]:
    if not all(_PART_RE.fullmatch(p) for p in parts):
        return None
    return [int(p) for p in parts]


def _build(year: int, month: int, day: int) -> Optional[date]:
    try:
        return date(year, month, day)
    except ValueError:
        return None


def _roll_back_if_future(year: int, month: int, day: int, today: date) -> Optional[date]:
    # Sheets without a year are assumed to be recent: "12.19" read in January is last December.
    d = _build(year, month, day)
    if d is not None and d > today:
        return _build(year - 1, month, day)
    return d


def parse_date(text: str, today: Optional[date] = None) -> Optional[date]:
    """
    Parse the date field of a lab sheet. Accepted forms (whole string):
      - YYYY-MM-DD / YYYY/MM/DD (YY-MM-DD means 20YY)
      - MM-DD / MM/DD
      - MM.DD
    Forms without a full year assume the current one and move back a year when
    the result would land after ``today``. Returns None when nothing matches.
    """
    today = today or date.today()
    s = (text or "").strip()
    if not s:
        return None

    if "-" in s or "/" in s:
        sep = "-" if "-" in s else "/"
        nums = _ints(s.split(sep))
        if nums is None:
            return None
        if len(nums) == 3:
            year, month, day = nums
            if year < 100:
                return _roll_back_if_future(2000 + year, month, day, today)
            return _build(year, month, day)
        if len(nums) == 2:
            return _roll_back_if_future(today.year, nums[0], nums[1], today)
        return None

    parts = s.split(".")
    if len(parts) == 2:
        nums = _ints(parts)
        if nums is None:
            return None
        return _roll_back_if_future(today.year, nums[0], nums[1], today)
    return None
