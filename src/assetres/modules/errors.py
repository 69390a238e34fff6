from __future__ import annotations

from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from assetres.db.availability import AssetAvailability


class AssetresError(Exception):
    pass


class ContextAlreadyExists(AssetresError):
    pass


class UnknownContext(AssetresError):
    pass


class ContextIsLocked(AssetresError):
    pass


class UnknownService(AssetresError):
    pass


class ValidationError(AssetresError):
    """ Raised for malformed input. The field is the name of the offending
    argument, if there is a single one.

    """

    __slots__ = ('message', 'field')

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.message = message
        self.field = field


class InvalidStatusTransition(ValidationError):

    __slots__ = ('old', 'new')

    def __init__(self, old: str, new: str):
        super().__init__(
            f'A reservation cannot change from {old} to {new}',
            field='status'
        )
        self.old = old
        self.new = new


class NotFoundError(AssetresError):
    """ Raised if a record does not exist, or if it exists but belongs to
    another organization. Both cases are indistinguishable on purpose.

    """

    __slots__ = ('kind', 'id')

    def __init__(self, kind: str, id: UUID | str | None):
        super().__init__(f'{kind} {id} not found')
        self.kind = kind
        self.id = id


class ConflictError(AssetresError):
    """ Raised if one or more of the requested assets cannot be booked.

    The availability attribute holds the result of the availability check
    for every requested asset, the conflicts attribute only the entries
    which are not available.

    """

    __slots__ = ('availability',)

    def __init__(self, availability: Sequence[AssetAvailability]):
        self.availability = list(availability)
        super().__init__(', '.join(
            f'{entry.asset_name or entry.asset_id} is not available'
            for entry in self.conflicts
        ))

    @property
    def conflicts(self) -> list[AssetAvailability]:
        return [a for a in self.availability if not a.is_available]


class PersistenceError(AssetresError):
    pass


class CheckoutError(ValidationError):
    pass
