from __future__ import annotations

import logging

from assetres.context.core import ContextServicesMixin
from assetres.db.availability import Booking
from assetres.db.models import Reservation, ReservationAsset
from sqlalchemy.sql import and_


from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection
    from datetime import date
    from sqlalchemy.orm import Query
    from uuid import UUID

    from assetres.context.core import Context

_T = TypeVar('_T')


log = logging.getLogger('assetres')


class Queries(ContextServicesMixin):
    """ Contains helper methods independent of the organization (as owned by
    :class:`.booker.Booker`).

    Some contained methods need the context (for the session).
    Some contained methods do not require any context, they are marked
    as staticmethods.

    """

    def __init__(self, context: Context):
        self.context = context

    @staticmethod
    def reservations_in_range(
        query: Query[_T],
        start: date,
        end: date
    ) -> Query[_T]:
        """ Takes a reservation query and limits it to the reservations
        sharing at least one day with start and end (both inclusive).

        """
        return query.filter(
            and_(
                Reservation.start_date <= end,
                Reservation.end_date >= start
            )
        )

    @staticmethod
    def committing_reservations(query: Query[_T]) -> Query[_T]:
        """ Takes a reservation query and leaves out the reservations which
        do not hold their assets anymore.

        """
        return query.filter(Reservation.status != 'cancelled')

    def committed_bookings(
        self,
        organization_id: UUID,
        asset_ids: Collection[UUID],
        start: date,
        end: date,
        exclude_reservation_id: UUID | None = None
    ) -> list[Booking]:
        """ Returns the bookings of the given assets by reservations of the
        organization that overlap start and end and are not cancelled.

        The reservation with the exclude_reservation_id is left out, so a
        reservation can be checked against everything but itself.

        """

        if not asset_ids:
            return []

        query: Query[tuple[UUID, UUID, str, date, date, str, int]]
        query = self.session.query(
            ReservationAsset.asset_id,
            Reservation.id,
            Reservation.title,
            Reservation.start_date,
            Reservation.end_date,
            Reservation.status,
            ReservationAsset.quantity
        )
        query = query.join(
            Reservation, ReservationAsset.reservation_id == Reservation.id
        )
        query = query.filter(Reservation.organization_id == organization_id)
        query = query.filter(ReservationAsset.asset_id.in_(asset_ids))
        query = self.committing_reservations(query)
        query = self.reservations_in_range(query, start, end)

        if exclude_reservation_id is not None:
            query = query.filter(Reservation.id != exclude_reservation_id)

        query = query.order_by(Reservation.start_date, Reservation.end_date)

        bookings = [Booking(*row) for row in query]

        log.debug(
            'Found %d committed bookings for %d assets between %s and %s',
            len(bookings), len(asset_ids), start, end
        )

        return bookings
