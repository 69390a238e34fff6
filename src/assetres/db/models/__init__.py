from assetres.db.models.base import ORMBase
from assetres.db.models.asset import Asset
from assetres.db.models.reservation import Reservation, ReservationAsset
from assetres.db.models.kit import AssetKit, AssetKitItem


__all__ = [
    'ORMBase',
    'Asset',
    'AssetKit',
    'AssetKitItem',
    'Reservation',
    'ReservationAsset',
]
