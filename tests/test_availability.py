from __future__ import annotations

import pytest

from datetime import date
from types import SimpleNamespace
from uuid import uuid4 as new_uuid

from assetres.db.availability import Booking
from assetres.db.availability import calculate_availability
from assetres.db.availability import committed_quantity
from assetres.db.availability import peak_usage
from assetres.modules.utils import AssetRequest


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from uuid import UUID


def asset(quantity: int = 1, status: str = 'active', **kw: Any) -> Any:
    return SimpleNamespace(
        id=kw.get('id', new_uuid()),
        name=kw.get('name', 'Light'),
        quantity=quantity,
        status=status,
        is_bookable=status == 'active' and quantity >= 1
    )


def booking(
    asset_id: UUID,
    start: date,
    end: date,
    quantity: int = 1,
    title: str = 'Shooting'
) -> Booking:
    return Booking(
        asset_id, new_uuid(), title, start, end, 'confirmed', quantity
    )


def test_peak_usage() -> None:
    a = new_uuid()

    bookings = [
        booking(a, date(2024, 1, 1), date(2024, 1, 5)),
        booking(a, date(2024, 1, 10), date(2024, 1, 15)),
    ]

    assert peak_usage(bookings, date(2024, 1, 3), date(2024, 1, 12)) == 1
    assert peak_usage(bookings, date(2024, 1, 6), date(2024, 1, 9)) == 0

    bookings.append(booking(a, date(2024, 1, 5), date(2024, 1, 10), 2))

    assert peak_usage(bookings, date(2024, 1, 1), date(2024, 1, 31)) == 3
    assert peak_usage(bookings, date(2024, 1, 6), date(2024, 1, 9)) == 2


def test_peak_usage_adjacent_bookings() -> None:
    a = new_uuid()

    # one ends the day before the other starts, they never coexist
    bookings = [
        booking(a, date(2024, 1, 1), date(2024, 1, 5)),
        booking(a, date(2024, 1, 6), date(2024, 1, 10)),
    ]

    assert peak_usage(bookings, date(2024, 1, 1), date(2024, 1, 10)) == 1


def test_committed_quantity_policies() -> None:
    a = new_uuid()
    start, end = date(2024, 1, 3), date(2024, 1, 12)

    bookings = [
        booking(a, date(2024, 1, 1), date(2024, 1, 5)),
        booking(a, date(2024, 1, 10), date(2024, 1, 15)),
        booking(a, date(2024, 2, 1), date(2024, 2, 2), 5),
    ]

    assert committed_quantity(bookings, start, end) == 2
    assert committed_quantity(bookings, start, end, 'overlap') == 2
    assert committed_quantity(bookings, start, end, 'daily_peak') == 1

    with pytest.raises(NotImplementedError):
        committed_quantity(bookings, start, end, 'optimistic')


def test_calculate_availability_overlap() -> None:
    camera = asset(quantity=2, name='Camera')

    bookings = [
        booking(camera.id, date(2024, 1, 10), date(2024, 1, 15), title='B'),
        booking(camera.id, date(2024, 1, 1), date(2024, 1, 5), title='A'),
    ]

    result = calculate_availability(
        [AssetRequest(camera.id, 2)],
        {camera.id: camera},
        bookings,
        date(2024, 1, 3),
        date(2024, 1, 12)
    )

    assert len(result) == 1
    assert result[0].asset_name == 'Camera'
    assert not result[0].is_available
    assert result[0].requested == 2
    assert result[0].committed == 2
    assert result[0].capacity == 2

    # the conflicts are sorted by date
    assert [c.title for c in result[0].conflicts] == ['A', 'B']


def test_calculate_availability_daily_peak() -> None:
    camera = asset(quantity=2)

    bookings = [
        booking(camera.id, date(2024, 1, 1), date(2024, 1, 5)),
        booking(camera.id, date(2024, 1, 10), date(2024, 1, 15)),
    ]

    args = (
        [AssetRequest(camera.id, 1)],
        {camera.id: camera},
        bookings,
        date(2024, 1, 3),
        date(2024, 1, 12)
    )

    assert not calculate_availability(*args, 'overlap')[0].is_available

    result = calculate_availability(*args, 'daily_peak')[0]
    assert result.is_available
    assert result.committed == 1

    # the conflicts are listed even though the asset is available
    assert len(result.conflicts) == 2


def test_calculate_availability_fails_closed() -> None:
    broken = asset(quantity=3, status='maintenance')
    unknown = new_uuid()

    result = calculate_availability(
        [AssetRequest(broken.id, 1), AssetRequest(unknown, 1)],
        {broken.id: broken},
        [booking(broken.id, date(2024, 1, 1), date(2024, 1, 1))],
        date(2024, 1, 1),
        date(2024, 1, 1)
    )

    assert [r.asset_id for r in result] == [broken.id, unknown]
    assert not any(r.is_available for r in result)
    assert not any(r.conflicts for r in result)

    assert result[0].asset_name == 'Light'
    assert result[0].capacity == 3
    assert result[1].asset_name is None
    assert result[1].capacity == 0


def test_calculate_availability_ignores_other_ranges() -> None:
    camera = asset(quantity=1)

    result = calculate_availability(
        [AssetRequest(camera.id, 1)],
        {camera.id: camera},
        [booking(camera.id, date(2024, 1, 1), date(2024, 1, 5))],
        date(2024, 1, 6),
        date(2024, 1, 10)
    )

    assert result[0].is_available
    assert result[0].committed == 0
    assert result[0].conflicts == []
