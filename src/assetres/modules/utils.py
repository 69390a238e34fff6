from __future__ import annotations

import re
import sedate

from collections.abc import Mapping
from datetime import date, datetime, time
from uuid import UUID

from assetres.modules import errors


from typing import NamedTuple
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Iterable
    from typing import Any
    from typing_extensions import TypeAlias

    _RequestLike: TypeAlias = 'AssetRequest | tuple[UUID | str, int | None] | UUID | str'  # noqa: E501
    Requests: TypeAlias = 'Mapping[UUID | str, int] | Iterable[_RequestLike]'


_time_expr = re.compile(r'^(\d{2}):(\d{2})$')


class AssetRequest(NamedTuple):
    asset_id: UUID
    quantity: int = 1


def as_uuid(value: UUID | str, field: str = 'id') -> UUID:
    if isinstance(value, UUID):
        return value

    try:
        return UUID(str(value))
    except ValueError:
        raise errors.ValidationError(
            f'{value!r} is not a valid id', field=field
        ) from None


def as_quantity(value: Any, field: str = 'quantity') -> int:
    if value is None:
        return 1

    # booleans are integers too, but nobody means True when asking for 1
    if isinstance(value, bool) or not isinstance(value, int):
        raise errors.ValidationError(
            f'{value!r} is not a valid quantity', field=field
        )

    if value < 1:
        raise errors.ValidationError(
            'Quantities must be at least 1', field=field
        )

    return value


def normalize_requests(
    requests: Requests,
    field: str = 'assets'
) -> list[AssetRequest]:
    """ Turns the given asset requests into a list of
    :class:`AssetRequest` tuples with one entry per asset.

    Accepted are mappings of asset id -> quantity, as well as iterables of
    (asset id, quantity) pairs or bare asset ids (quantity 1). Requests for
    the same asset are summed up, the order of the first occurrence is kept.

    """
    if isinstance(requests, Mapping):
        requests = list(requests.items())

    totals: dict[UUID, int] = {}

    for request in requests:
        if isinstance(request, (tuple, list)):
            if len(request) != 2:
                raise errors.ValidationError(
                    f'{request!r} is not an (asset id, quantity) pair',
                    field=field
                )
            asset_id, quantity = request
        else:
            asset_id, quantity = request, 1

        asset_id = as_uuid(asset_id, field=field)
        quantity = as_quantity(quantity, field=field)

        totals[asset_id] = totals.get(asset_id, 0) + quantity

    return [AssetRequest(a, q) for a, q in totals.items()]


def as_date(value: date | str, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()

    if isinstance(value, date):
        return value

    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip())
        except ValueError:
            pass

    raise errors.ValidationError(f'{value!r} is not a valid date', field=field)


def as_time(value: time | str | None, field: str) -> time | None:
    """ Times of day are advisory only, they are accepted as time objects or
    as HH:MM strings. Empty values result in None.

    """
    if value is None or value == '':
        return None

    if isinstance(value, time):
        return value

    match = _time_expr.match(value.strip()) if isinstance(value, str) else None

    if match:
        hour, minute = (int(g) for g in match.groups())

        if hour < 24 and minute < 60:
            return time(hour, minute)

    raise errors.ValidationError(
        f'{value!r} is not a valid time (use HH:MM)', field=field
    )


def validate_range(start: date, end: date) -> tuple[date, date]:
    if end < start:
        raise errors.ValidationError(
            'The end date must be on or after the start date',
            field='end_date'
        )

    return start, end


def overlaps(
    start: date,
    end: date,
    other_start: date,
    other_end: date
) -> bool:
    """ True if the closed ranges share at least one day. """
    return sedate.overlaps(start, end, other_start, other_end)


def unique(
    values: Iterable[Any] | None,
    field: str = 'team_members'
) -> list[str]:
    """ Removes duplicates from the given references, keeping the order.

    A single string is rejected, it would otherwise be split into its
    characters.

    """
    if isinstance(values, str):
        raise errors.ValidationError(
            f'Expected a list, not the string {values!r}', field=field
        )

    if not values:
        return []

    return list(dict.fromkeys(str(v) for v in values))
