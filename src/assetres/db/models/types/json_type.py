from __future__ import annotations

from sqlalchemy import types
from sqlalchemy.ext.mutable import MutableList
from sqlalchemy.dialects.postgresql import JSONB


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from sqlalchemy.engine import Dialect
    from sqlalchemy.types import TypeEngine

    _Base = types.TypeDecorator[list[str]]
else:
    _Base = types.TypeDecorator


class JSONList(_Base):
    """ A JSON list which coerces None's to empty lists. Stored as JSONB on
    Postgres and as JSON elsewhere.

    On the Python end you should always see a list.

    """

    impl = types.JSON
    cache_ok = True

    def load_dialect_impl(self, dialect: Dialect) -> TypeEngine[object]:
        if dialect.name == 'postgresql':
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(types.JSON())

    def process_bind_param(  # type:ignore[override]
        self,
        value: list[str] | None,
        dialect: Dialect
    ) -> list[str]:

        return [] if value is None else list(value)

    def process_result_value(
        self,
        value: list[str] | None,
        dialect: Dialect
    ) -> list[str]:

        return [] if value is None else value


MutableList.associate_with(JSONList)
