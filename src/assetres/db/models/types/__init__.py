from assetres.db.models.types.json_type import JSONList
from assetres.db.models.types.utcdatetime import UTCDateTime
from assetres.db.models.types.uuid_type import UUID


__all__ = ['JSONList', 'UTCDateTime', 'UUID']
