from __future__ import annotations

from sqlalchemy import select

from assetres.db.models import Asset


from typing import Protocol
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Collection
    from sqlalchemy.orm import Session
    from uuid import UUID

    from assetres.context.core import Context


class AssetCatalog(Protocol):
    """ The source of the bookable assets of an organization.

    Replace the ``asset_catalog`` service of a context to read the assets
    from somewhere else. The returned objects need an ``id``, a ``name``, a
    ``quantity`` and a ``status``. Ids which are unknown or belong to
    another organization are left out.

    """

    def get_assets_by_ids(
        self,
        session: Session,
        organization_id: UUID,
        ids: Collection[UUID],
        lock: bool = False
    ) -> list[Asset]: ...


class DatabaseAssetCatalog:
    """ Reads the assets from the ``assets`` table of the booking database.

    With ``lock`` the asset rows are locked until the end of the
    transaction (``SELECT ... FOR UPDATE``), which serializes concurrent
    availability checks for the same asset. The rows are always locked in
    the order of their ids, so two transactions locking overlapping sets of
    assets cannot deadlock.

    """

    def __init__(self, context: Context):
        self.context = context

    def get_assets_by_ids(
        self,
        session: Session,
        organization_id: UUID,
        ids: Collection[UUID],
        lock: bool = False
    ) -> list[Asset]:

        if not ids:
            return []

        query = select(Asset)
        query = query.where(Asset.organization_id == organization_id)
        query = query.where(Asset.id.in_(ids))
        query = query.order_by(Asset.id)

        if lock:
            query = query.with_for_update()

        return list(session.scalars(query))
