""" Events are called by the :class:`assetres.db.booker.Booker` whenever
something interesting occurs.

The implementation is very simple:

To add an event::

    from assetres.modules import events

    def on_reservation_created(context, reservation):
        pass

    events.on_reservation_created.append(on_reservation_created)

To remove the same event::

    events.on_reservation_created.remove(on_reservation_created)

Events are called in the order they were added, inside the transaction of
the operation that triggered them.
"""
from __future__ import annotations


from typing import overload
from typing import Protocol
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Sequence
    from datetime import date
    from typing_extensions import ParamSpec
    from uuid import UUID

    from assetres.context.core import Context
    from assetres.db.models import Reservation
    from assetres.modules.utils import AssetRequest

    _P = ParamSpec('_P')


class Event(list['Callable[_P, object]']):
    """Event subscription. By http://stackoverflow.com/a/2022629

    A list of callable objects. Calling an instance of this will cause a
    call to each item in the list in ascending order by index.

    """
    # NOTE: This is only used for binding the correct `ParamSpec` for callback
    #       protocols, otherwise we have to define a pseudo-type, that doesn't
    #       look like an instance of `Event`...
    @overload
    def __init__(self, f: type[Callable[_P, object]]) -> None: ...
    @overload
    def __init__(self) -> None: ...

    def __init__(self, f: object = None) -> None:
        return

    def __call__(self, *args: _P.args, **kwargs: _P.kwargs) -> None:
        for f in self:
            f(*args, **kwargs)


on_reservation_created: Event[Context, Reservation] = Event()
""" Called when a reservation was written, with the following arguments:

    :context:
        The :class:`assetres.context.core.Context` used when creating the
        reservation.

    :reservation:
        The :class:`assetres.db.models.Reservation` including its assets.

"""

on_reservation_updated: Event[Context, Reservation] = Event()
""" Called after any change to a reservation was applied, with the following
arguments:

    :context:
        The :class:`assetres.context.core.Context` used.

    :reservation:
        The updated :class:`assetres.db.models.Reservation`.

"""


class _OnReservationDatesChangedCallback(Protocol):
    def __call__(
        self,
        context: Context,
        reservation: Reservation,
        /,
        old_dates: tuple[date, date],
        new_dates: tuple[date, date]
    ) -> None: ...


on_reservation_dates_changed = Event(_OnReservationDatesChangedCallback)
""" Called when the date range of a reservation changes, with the following
arguments:

    :context:
        The :class:`assetres.context.core.Context` used.

    :reservation:
        The :class:`assetres.db.models.Reservation` whose dates changed.

    :old_dates:
        A tuple with the old start and end date.

    :new_dates:
        A tuple with the new start and end date.

"""


class _OnReservationStatusChangedCallback(Protocol):
    def __call__(
        self,
        context: Context,
        reservation: Reservation,
        /,
        old_status: str,
        new_status: str
    ) -> None: ...


on_reservation_status_changed = Event(_OnReservationStatusChangedCallback)
""" Called when the status of a reservation changes, with the following
arguments:

    :context:
        The :class:`assetres.context.core.Context` used.

    :reservation:
        The :class:`assetres.db.models.Reservation`.

    :old_status:
        The status before the change.

    :new_status:
        The status after the change.

"""

on_reservation_removed: Event[Context, Reservation] = Event()
""" Called after a reservation was deleted, with the following arguments:

    :context:
        The :class:`assetres.context.core.Context` used.

    :reservation:
        The deleted :class:`assetres.db.models.Reservation`. Its rows are
        gone from the session, the transaction is not committed yet.

"""

on_kit_expanded: Event[Context, UUID, Sequence[AssetRequest]] = Event()
""" Called whenever a kit is expanded into asset requests, with the
following arguments:

    :context:
        The :class:`assetres.context.core.Context` used.

    :kit_id:
        The id of the expanded kit.

    :requests:
        The list of :class:`assetres.modules.utils.AssetRequest` tuples.

"""
