"""Shared fixtures for CRM Finance tests."""

from datetime import datetime
from decimal import Decimal
from itertools import count

import pytest

from crm_finance.models.record import FinancialRecord, RecordKind


@pytest.fixture
def make_record():
    """Factory for valid records; total is derived from price x quantity."""
    ids = count(1)

    def _make(
        member="張三",
        kind=RecordKind.INCOME,
        unit_price="100",
        quantity=1,
        timestamp=datetime(2024, 1, 15, 10, 30),
        item="課程費用",
        details="",
        location="台北市",
        record_id=None,
    ) -> FinancialRecord:
        price = Decimal(unit_price)
        return FinancialRecord(
            id=record_id or str(next(ids)),
            timestamp=timestamp,
            member=member,
            item=item,
            details=details,
            location=location,
            unit_price=price,
            quantity=quantity,
            total_amount=price * quantity,
            kind=kind,
        )

    return _make
