""" Computes whether requested asset quantities can be booked over a range
of days, given the bookings already committed for those assets.

Nothing in here touches the database, the bookings are passed in by
:meth:`assetres.db.booker.Booker.check_availability`.

"""
from __future__ import annotations

from collections import defaultdict
from datetime import timedelta

from assetres.modules.utils import overlaps


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from collections.abc import Mapping
    from collections.abc import Sequence
    from datetime import date
    from uuid import UUID

    from assetres.db.models import Asset
    from assetres.modules.utils import AssetRequest


POLICIES = ('overlap', 'daily_peak')


class Booking(NamedTuple):
    """ A quantity of an asset committed by a reservation. """

    asset_id: UUID
    reservation_id: UUID
    title: str
    start_date: date
    end_date: date
    status: str
    quantity: int


class Conflict(NamedTuple):
    reservation_id: UUID
    title: str
    start_date: date
    end_date: date
    status: str
    quantity: int

    @classmethod
    def from_booking(cls, booking: Booking) -> Conflict:
        return cls(
            booking.reservation_id,
            booking.title,
            booking.start_date,
            booking.end_date,
            booking.status,
            booking.quantity
        )


class AssetAvailability(NamedTuple):
    asset_id: UUID
    asset_name: str | None
    is_available: bool
    requested: int
    committed: int
    capacity: int
    conflicts: list[Conflict]


def peak_usage(bookings: Iterable[Booking], start: date, end: date) -> int:
    """ Returns the highest quantity booked on any single day between start
    and end (inclusive).

    """
    changes: list[tuple[date, int]] = []

    for booking in bookings:
        if not overlaps(booking.start_date, booking.end_date, start, end):
            continue

        first = max(booking.start_date, start)
        last = min(booking.end_date, end)

        changes.append((first, booking.quantity))
        changes.append((last + timedelta(days=1), -booking.quantity))

    # on the same day, bookings ending the day before are released before
    # the bookings starting that day are added
    changes.sort()

    peak = current = 0
    for _, change in changes:
        current += change
        peak = max(peak, current)

    return peak


def committed_quantity(
    bookings: Sequence[Booking],
    start: date,
    end: date,
    policy: str = 'overlap'
) -> int:
    """ Returns the quantity of an asset which is not available anymore
    between start and end.

    With the ``overlap`` policy all bookings overlapping the range count,
    as if they all happened at the same time. The ``daily_peak`` policy only
    counts what is really booked on the busiest day.

    """
    if policy == 'overlap':
        return sum(
            b.quantity for b in bookings
            if overlaps(b.start_date, b.end_date, start, end)
        )

    if policy == 'daily_peak':
        return peak_usage(bookings, start, end)

    raise NotImplementedError(f'Unknown availability policy: {policy}')


def calculate_availability(
    requests: Sequence[AssetRequest],
    assets: Mapping[UUID, Asset],
    bookings: Iterable[Booking],
    start: date,
    end: date,
    policy: str = 'overlap'
) -> list[AssetAvailability]:
    """ Returns the availability of each requested asset, in the order of
    the requests.

    Assets missing from the assets mapping, or assets which cannot be
    booked (not active), are never available and list no conflicts.

    The conflicts of available assets are listed as well, to show what
    else is going on in the requested range.

    """
    by_asset: dict[UUID, list[Booking]] = defaultdict(list)

    for booking in bookings:
        if overlaps(booking.start_date, booking.end_date, start, end):
            by_asset[booking.asset_id].append(booking)

    result = []

    for request in requests:
        asset = assets.get(request.asset_id)

        if asset is None or not asset.is_bookable:
            result.append(AssetAvailability(
                asset_id=request.asset_id,
                asset_name=asset.name if asset is not None else None,
                is_available=False,
                requested=request.quantity,
                committed=0,
                capacity=asset.quantity if asset is not None else 0,
                conflicts=[]
            ))
            continue

        overlapping = sorted(
            by_asset[request.asset_id],
            key=lambda b: (b.start_date, b.end_date, str(b.reservation_id))
        )
        committed = committed_quantity(overlapping, start, end, policy)

        result.append(AssetAvailability(
            asset_id=request.asset_id,
            asset_name=asset.name,
            is_available=committed + request.quantity <= asset.quantity,
            requested=request.quantity,
            committed=committed,
            capacity=asset.quantity,
            conflicts=[Conflict.from_booking(b) for b in overlapping]
        ))

    return result
