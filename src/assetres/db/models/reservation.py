from __future__ import annotations

from datetime import date, datetime, time
from uuid import UUID, uuid4 as new_uuid

from sqlalchemy import types
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.schema import CheckConstraint
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import Index
from sqlalchemy.schema import UniqueConstraint

from assetres.db.models.asset import Asset
from assetres.db.models.base import ORMBase
from assetres.db.models.timestamp import TimestampMixin
from assetres.modules.utils import AssetRequest


from typing import Any


STATUSES = ('pending', 'confirmed', 'active', 'completed', 'cancelled')
PRIORITIES = ('low', 'normal', 'high', 'critical')

#: The statuses a reservation may move to from a given status. Reservations
#: which are completed or cancelled are final.
TRANSITIONS: dict[str, frozenset[str]] = {
    'pending': frozenset(('confirmed', 'active', 'cancelled')),
    'confirmed': frozenset(('active', 'cancelled')),
    'active': frozenset(('completed', 'cancelled')),
    'completed': frozenset(),
    'cancelled': frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, t in TRANSITIONS.items() if not t)


class Reservation(TimestampMixin, ORMBase):
    """ Holds a number of assets in given quantities over a range of days.

    The range is inclusive on both ends. The times of day are purely
    informational, two reservations on the same day always overlap.

    Cancelled reservations are kept, but they do not commit any quantity.

    """

    __tablename__ = 'reservations'

    id: Mapped[UUID] = mapped_column(primary_key=True, default=new_uuid)

    organization_id: Mapped[UUID]

    title: Mapped[str] = mapped_column(types.Text())

    project_name: Mapped[str | None] = mapped_column(types.Text())

    description: Mapped[str | None] = mapped_column(types.Text())

    start_date: Mapped[date]

    end_date: Mapped[date]

    start_time: Mapped[time | None]

    end_time: Mapped[time | None]

    location: Mapped[str | None] = mapped_column(types.Text())

    status: Mapped[str] = mapped_column(
        types.Enum(*STATUSES, name='reservation_status'),
        default='pending'
    )

    priority: Mapped[str] = mapped_column(
        types.Enum(*PRIORITIES, name='reservation_priority'),
        default='normal'
    )

    #: The user who made the reservation
    reserved_by: Mapped[str | None] = mapped_column(types.Text())

    team_members: Mapped[list[str]] = mapped_column(default=list)

    notes: Mapped[str | None] = mapped_column(types.Text())

    assets: Mapped[list[ReservationAsset]] = relationship(
        back_populates='reservation',
        cascade='all, delete-orphan',
        order_by='ReservationAsset.id',
        lazy='selectin'
    )

    __table_args__ = (
        Index(
            'reservation_organization_dates_ix',
            'organization_id', 'start_date', 'end_date'
        ),
        CheckConstraint(
            'end_date >= start_date', name='reservation_dates_ordered'
        ),
    )

    def __repr__(self) -> str:
        return (
            f'<Reservation {self.title!r} '
            f'{self.start_date}..{self.end_date} ({self.status})>'
        )

    @property
    def dates(self) -> tuple[date, date]:
        return self.start_date, self.end_date

    @property
    def is_cancelled(self) -> bool:
        return self.status == 'cancelled'

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def can_change_status(self, status: str) -> bool:
        return status == self.status or status in TRANSITIONS[self.status]

    def requests(self) -> list[AssetRequest]:
        """ The assets of this reservation as asset requests. """
        return [AssetRequest(a.asset_id, a.quantity) for a in self.assets]

    def asset_by_id(self, asset_id: UUID) -> ReservationAsset | None:
        for reserved in self.assets:
            if reserved.asset_id == asset_id:
                return reserved
        return None


class ReservationAsset(ORMBase):
    """ The quantity of a single asset held by a reservation. Each asset
    is held at most once per reservation.

    """

    __tablename__ = 'reservation_assets'

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    reservation_id: Mapped[UUID] = mapped_column(
        ForeignKey(Reservation.id, ondelete='CASCADE')
    )

    asset_id: Mapped[UUID] = mapped_column(ForeignKey(Asset.id))

    quantity: Mapped[int] = mapped_column(default=1)

    checked_out_at: Mapped[datetime | None]

    checked_in_at: Mapped[datetime | None]

    created: Mapped[datetime] = mapped_column(
        default=TimestampMixin.timestamp
    )

    reservation: Mapped[Reservation] = relationship(back_populates='assets')

    # the asset summary is shown with pretty much every reservation
    asset: Mapped[Asset] = relationship(lazy='joined')

    __table_args__ = (
        UniqueConstraint(
            'reservation_id', 'asset_id', name='reservation_asset_ix'
        ),
        Index('reserved_asset_ix', 'asset_id', 'reservation_id'),
        CheckConstraint(
            'quantity >= 1', name='reservation_asset_quantity_positive'
        ),
    )

    def __repr__(self) -> str:
        return f'<ReservationAsset {self.asset_id} x{self.quantity}>'

    @property
    def is_checked_out(self) -> bool:
        return self.checked_out_at is not None and self.checked_in_at is None

    def summary(self) -> dict[str, Any]:
        return {
            'asset_id': self.asset_id,
            'quantity': self.quantity,
            'checked_out_at': self.checked_out_at,
            'checked_in_at': self.checked_in_at,
            'asset': self.asset.summary() if self.asset else None,
        }
