from __future__ import annotations

import uuid

from sqlalchemy import types


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect

    _Base = types.TypeDecorator['SoftUUID']
else:
    _Base = types.TypeDecorator


class SoftUUID(uuid.UUID):
    """ Behaves just like the UUID class, but allows strings to be compared
    with it, so that SoftUUID('my-uuid') == 'my-uuid' equals True.

    """

    def __eq__(self, other: object) -> bool:

        if isinstance(other, str):
            return self.hex == other.replace('-', '').strip()

        if isinstance(other, uuid.UUID):
            return self.int == other.int

        return False

    def __ne__(self, other: object) -> bool:
        return not self.__eq__(other)

    def __hash__(self) -> int:
        return hash(self.int)


class UUID(_Base):
    """ Platform independent uuid type, native on Postgres, CHAR(32) on
    other databases. Accepts strings on bind and returns SoftUUIDs.

    """
    impl = types.Uuid
    cache_ok = True

    def process_bind_param(
        self,
        value: uuid.UUID | str | None,
        dialect: Dialect
    ) -> uuid.UUID | None:

        if value is None:
            return None

        if isinstance(value, uuid.UUID):
            return value

        return uuid.UUID(value)

    def process_result_value(
        self,
        value: uuid.UUID | None,
        dialect: Dialect
    ) -> SoftUUID | None:

        if value is not None:
            return SoftUUID(int=value.int)
        return None
