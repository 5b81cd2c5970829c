"""
Demo records for an empty ledger.

These are the sample entries the CRM shipped with, so a fresh install
shows populated list, by-name and report pages.
"""

from datetime import datetime
from decimal import Decimal

from crm_finance.models.record import FinancialRecord, RecordKind


def demo_records() -> list[FinancialRecord]:
    """Return fresh copies of the demo records."""
    return [
        FinancialRecord(
            id="1",
            timestamp=datetime(2024, 1, 15, 10, 30),
            member="張三",
            item="課程費用",
            details="瑜伽課程",
            location="台北市",
            unit_price=Decimal("500"),
            quantity=1,
            total_amount=Decimal("500"),
            kind=RecordKind.INCOME,
        ),
        FinancialRecord(
            id="2",
            timestamp=datetime(2024, 1, 16, 14, 20),
            member="李四",
            item="器材購買",
            details="瑜伽墊",
            location="台北市",
            unit_price=Decimal("149.94"),
            quantity=1,
            total_amount=Decimal("149.94"),
            kind=RecordKind.EXPENSE,
        ),
        FinancialRecord(
            id="3",
            timestamp=datetime(2024, 2, 10, 9, 15),
            member="王五",
            item="課程費用",
            details="私人教練",
            location="台北市",
            unit_price=Decimal("800"),
            quantity=1,
            total_amount=Decimal("800"),
            kind=RecordKind.INCOME,
        ),
    ]
