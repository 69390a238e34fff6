from __future__ import annotations

from uuid import UUID, uuid4 as new_uuid

from sqlalchemy import types
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import mapped_column
from sqlalchemy.orm import relationship
from sqlalchemy.schema import CheckConstraint
from sqlalchemy.schema import ForeignKey
from sqlalchemy.schema import UniqueConstraint

from assetres.db.models.asset import Asset
from assetres.db.models.base import ORMBase
from assetres.db.models.timestamp import TimestampMixin
from assetres.modules.utils import AssetRequest


class AssetKit(TimestampMixin, ORMBase):
    """ A named bundle of assets which are usually booked together.

    Kits are templates. Booking a kit copies its items into the reservation,
    changing the kit later on does not change existing reservations.

    """

    __tablename__ = 'asset_kits'

    id: Mapped[UUID] = mapped_column(primary_key=True, default=new_uuid)

    organization_id: Mapped[UUID]

    name: Mapped[str] = mapped_column(types.Text())

    description: Mapped[str | None] = mapped_column(types.Text())

    category: Mapped[str | None] = mapped_column(types.Text())

    created_by: Mapped[str | None] = mapped_column(types.Text())

    items: Mapped[list[AssetKitItem]] = relationship(
        back_populates='kit',
        cascade='all, delete-orphan',
        order_by='AssetKitItem.id',
        lazy='selectin'
    )

    def __repr__(self) -> str:
        return f'<AssetKit {self.name!r}>'

    def requests(self) -> list[AssetRequest]:
        return [AssetRequest(i.asset_id, i.quantity) for i in self.items]


class AssetKitItem(ORMBase):

    __tablename__ = 'asset_kit_items'

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)

    kit_id: Mapped[UUID] = mapped_column(
        ForeignKey(AssetKit.id, ondelete='CASCADE')
    )

    asset_id: Mapped[UUID] = mapped_column(ForeignKey(Asset.id))

    quantity: Mapped[int] = mapped_column(default=1)

    kit: Mapped[AssetKit] = relationship(back_populates='items')

    asset: Mapped[Asset] = relationship(lazy='joined')

    __table_args__ = (
        UniqueConstraint('kit_id', 'asset_id', name='kit_asset_ix'),
        CheckConstraint('quantity >= 1', name='kit_item_quantity_positive'),
    )
