# backend/inventory_api/core/sequence.py
from __future__ import annotations
import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session


class SequenceGenerator:
    """
    Numara üretici: prefix + tarih + ayraç + sıfır dolgulu sıra.

      Sipariş   : 202506-0001     (aylık)
      Satın alma: PO-20250614-0001 (günlük)
      Kurulum   : IN-20250614-0001 (günlük)

    Sıra, aynı tarih anahtarına sahip mevcut en büyük numaradan +1 ile devam eder.
    Genişliği aşan sıralar büyümeye devam eder (202506-10000).
    """

    def __init__(self, column, *, prefix: str = "", date_format: str = "%Y%m%d",
                 width: int = 4, separator: str = "-"):
        self.column = column
        self.prefix = prefix
        self.date_format = date_format
        self.width = width
        self.separator = separator
        self._pattern = re.compile(
            r"^" + re.escape(prefix) + r"(\d{%d})" % len(date.today().strftime(date_format))
            + re.escape(separator) + r"(\d{%d,})$" % width
        )

    def key_for(self, for_date: Optional[date] = None) -> str:
        d = for_date or date.today()
        return f"{self.prefix}{d.strftime(self.date_format)}{self.separator}"

    def format(self, key: str, seq: int) -> str:
        return f"{key}{seq:0{self.width}d}"

    def _max_sequence(self, db: Session, key: str) -> int:
        rows = db.query(self.column).filter(self.column.like(f"{key}%")).all()
        best = 0
        for (num,) in rows:
            parsed = self.parse(num)
            if parsed["valid"]:
                best = max(best, parsed["sequence"])
        return best

    def generate_next(self, db: Session, for_date: Optional[date] = None) -> str:
        key = self.key_for(for_date)
        return self.format(key, self._max_sequence(db, key) + 1)

    def generate_batch(self, db: Session, count: int, for_date: Optional[date] = None) -> List[str]:
        if count <= 0:
            return []
        key = self.key_for(for_date)
        start = self._max_sequence(db, key) + 1
        return [self.format(key, start + i) for i in range(count)]

    def validate(self, number: Optional[str]) -> bool:
        return self.parse(number)["valid"]

    def parse(self, number: Optional[str]) -> Dict[str, Any]:
        m = self._pattern.match(number or "")
        if not m:
            return {"valid": False, "date": None, "sequence": None}
        try:
            parsed_date = datetime.strptime(m.group(1), self.date_format).date()
        except ValueError:
            return {"valid": False, "date": None, "sequence": None}
        return {"valid": True, "date": parsed_date.isoformat(), "sequence": int(m.group(2))}
