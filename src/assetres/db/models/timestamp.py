from __future__ import annotations

import sedate

from datetime import datetime
from assetres.db.models.types import UTCDateTime
from sqlalchemy.orm import Mapped
from sqlalchemy.orm import declared_attr
from sqlalchemy.orm import mapped_column


from typing import TYPE_CHECKING


class TimestampMixin:
    """ Mixin providing created/modified timestamps for all records.

    The columns are deferred loaded as they are primarily used for the
    ordering of lists and for auditing.

    """

    @staticmethod
    def timestamp() -> datetime:
        return sedate.utcnow()

    if TYPE_CHECKING:
        created: Mapped[datetime]
        modified: Mapped[datetime | None]

    else:
        @declared_attr
        def created(cls) -> Mapped[datetime]:
            return mapped_column(
                UTCDateTime(),
                default=cls.timestamp,
                nullable=False,
                deferred=True
            )

        @declared_attr
        def modified(cls) -> Mapped[datetime | None]:
            return mapped_column(
                UTCDateTime(),
                onupdate=cls.timestamp,
                nullable=True,
                deferred=True
            )
