from __future__ import annotations

from uuid import UUID, uuid4 as new_uuid

from sqlalchemy import types
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.schema import CheckConstraint
from sqlalchemy.schema import Index

from assetres.db.models.base import ORMBase
from assetres.db.models.timestamp import TimestampMixin


from typing import Any


ASSET_STATUSES = ('active', 'maintenance', 'retired', 'sold')


class Asset(TimestampMixin, ORMBase):
    """ A bookable resource with a number of interchangeable units.

    The assets are owned by the asset catalog of the surrounding application.
    The booking code only ever reads them (and locks them while checking
    availability).

    """

    __tablename__ = 'assets'

    id: Mapped[UUID] = mapped_column(primary_key=True, default=new_uuid)

    organization_id: Mapped[UUID]

    name: Mapped[str] = mapped_column(types.Text())

    category: Mapped[str | None] = mapped_column(types.Text())

    location: Mapped[str | None] = mapped_column(types.Text())

    #: The number of interchangeable units of this asset
    quantity: Mapped[int] = mapped_column(default=1)

    status: Mapped[str] = mapped_column(
        types.Enum(*ASSET_STATUSES, name='asset_status'),
        default='active'
    )

    __table_args__ = (
        Index('asset_organization_ix', 'organization_id', 'id'),
        CheckConstraint('quantity >= 1', name='asset_quantity_positive'),
    )

    def __repr__(self) -> str:
        return f'<Asset {self.name!r} ({self.quantity})>'

    @property
    def is_bookable(self) -> bool:
        return self.status == 'active' and (self.quantity or 0) >= 1

    def summary(self) -> dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'category': self.category,
            'status': self.status,
            'location': self.location,
        }
