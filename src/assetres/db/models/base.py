from __future__ import annotations

from datetime import datetime
from sqlalchemy.orm import registry
from sqlalchemy.orm import DeclarativeBase
from uuid import UUID as PythonUUID

from .types import JSONList
from .types import UTCDateTime
from .types import UUID


class ORMBase(DeclarativeBase):

    registry = registry(type_annotation_map={
        datetime: UTCDateTime(),
        list[str]: JSONList,
        PythonUUID: UUID,
    })
