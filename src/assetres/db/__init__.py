from __future__ import annotations

from assetres.db.booker import Booker


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from uuid import UUID

    from assetres.context.core import Context


def new_booker(
    context: Context,
    organization_id: UUID | str,
    **kwargs: Any
) -> Booker:
    """ Creates a booker for the given organization. The kwargs are passed
    on to :class:`~assetres.db.booker.Booker`.

    """
    return Booker(context, organization_id, **kwargs)


__all__ = (
    'Booker',
    'new_booker',
)
