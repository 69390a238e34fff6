from __future__ import annotations

import enum
import threading
from functools import cached_property

from assetres.modules import errors


from typing import Any
from typing import Literal
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from sqlalchemy.orm import Session
    from sqlalchemy.orm import SessionTransaction
    from typing_extensions import TypeAlias

    from assetres.context.catalog import AssetCatalog
    from assetres.context.session import SessionProvider


class _Marker(enum.Enum):
    missing = enum.auto()
    required = enum.auto()


missing_t: TypeAlias = Literal[_Marker.missing]  # noqa: PYI042
required_t: TypeAlias = Literal[_Marker.required]  # noqa: PYI042
missing: missing_t = _Marker.missing
required: required_t = _Marker.required


class StoppableService:
    """ A service that holds on to resources (connections, threads).

    Its stop_service method is called when the context replaces it with
    another value, not when the process ends.

    """

    def stop_service(self) -> None:
        pass


class ContextServicesMixin:
    """ Gives the bookers access to the settings and services of their
    context. Classes using the mixin have to set self.context.

    The catalog and the availability policy are looked up once per
    instance. Call :meth:`clear_cache` after changing them on the context.

    """

    context: Context

    @cached_property
    def asset_catalog(self) -> AssetCatalog:
        return self.context.get_service('asset_catalog')  # type: ignore[no-any-return]

    @cached_property
    def availability_policy(self) -> str:
        return self.context.get_setting('availability_policy')  # type: ignore[no-any-return]

    def clear_cache(self) -> None:
        for name in ('asset_catalog', 'availability_policy'):
            self.__dict__.pop(name, None)

    @property
    def session_provider(self) -> SessionProvider:
        return self.context.get_service('session_provider')  # type: ignore[no-any-return]

    @property
    def session(self) -> Session:
        """ The session of the current thread. """
        return self.session_provider.session()  # type: ignore[no-any-return]

    def close(self) -> None:
        self.session.close()

    @property
    def begin_nested(self) -> Callable[[], SessionTransaction]:
        return self.session.begin_nested

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class Context:
    """ Holds the settings (like the database dsn) and the services (like
    the asset catalog) a booker works with.

    Every application using assetres registers its own context and passes
    it to the bookers it creates::

        from assetres import registry
        context = registry.register_context('rental')
        context.set_setting('dsn', 'postgresql://localhost/rental')

    Values missing on a context are looked up on its parent, which is the
    master context of the registry. The master context holds the defaults
    and is locked, so applications cannot change each other's defaults.

    Bookers cache what they read from the context, create new bookers after
    changing it (or call :meth:`~.ContextServicesMixin.clear_cache`).

    """

    def __init__(
        self,
        name: str,
        parent: Context | None = None,
        locked: bool = False
    ):
        self.name = name
        self.parent = parent
        self.locked = locked
        self.values: dict[str, Any] = {}
        self.thread_lock = threading.RLock()

    def __repr__(self) -> str:
        return f"<Assetres Context(name='{self.name}')>"

    def lock(self) -> None:
        with self.thread_lock:
            self.locked = True

    def get(self, key: str) -> Any | missing_t:
        context: Context | None = self

        while context is not None:
            if key in context.values:
                return context.values[key]
            context = context.parent

        return missing

    def set(self, key: str, value: Any) -> None:
        with self.thread_lock:
            if self.locked:
                raise errors.ContextIsLocked

            previous = self.values.get(key)
            if isinstance(previous, StoppableService):
                previous.stop_service()

            self.values[key] = value

    def get_setting(self, name: str) -> Any:
        return self.get(f'settings.{name}')

    def set_setting(self, name: str, value: Any) -> None:
        self.set(f'settings.{name}', value)

    def get_service(self, name: str) -> Any:
        """ Returns the service created by the factory registered under the
        given name. Cached services are created once per context.

        """
        factory = self.get(f'service/{name}')

        if factory is missing:
            raise errors.UnknownService(f'service/{name}')

        cache_key = f'service/{name}/cache'
        cached = self.get(cache_key)

        if cached is missing:
            return factory(self)

        with self.thread_lock:
            # the parent only marks the service as cached, each context
            # creates its own instance
            if cache_key not in self.values:
                self.set(cache_key, factory(self))

            return self.values[cache_key]

    def set_service(
        self,
        name: str,
        factory: Callable[[Context], Any],
        cache: bool = False
    ) -> None:
        with self.thread_lock:
            self.set(f'service/{name}', factory)

            if cache:
                self.set(f'service/{name}/cache', required)
