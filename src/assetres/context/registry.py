from __future__ import annotations

import threading

from assetres.modules import errors
from assetres.context.core import Context


def create_default_registry() -> Registry:
    """ Returns a registry whose master context knows the assetres services
    and default settings.

    """

    from assetres.context.catalog import DatabaseAssetCatalog
    from assetres.context.session import SessionProvider
    from assetres.context.settings import set_default_settings

    registry = Registry()

    def session_provider(context: Context) -> SessionProvider:
        return SessionProvider(context.get_setting('dsn'))

    def asset_catalog(context: Context) -> DatabaseAssetCatalog:
        return DatabaseAssetCatalog(context)

    master = registry.master_context
    master.set_service('session_provider', session_provider, cache=True)
    master.set_service('asset_catalog', asset_catalog)
    set_default_settings(master)
    master.lock()

    return registry


class Registry:
    """ Keeps the contexts of all applications by name.

    The registry does not track an active context. Bookers are always
    created for an explicit context, see :func:`assetres.new_booker`.

    Most applications use the global registry::

        from assetres import registry

    Tests and applications that need isolation create their own::

        from assetres.context.registry import create_default_registry
        registry = create_default_registry()

    """

    contexts: dict[str, Context]
    master_context: Context

    def __init__(self) -> None:
        self.thread_lock = threading.RLock()
        self.contexts = {}
        self.master_context = Context('master')
        self.contexts['master'] = self.master_context

    def is_existing_context(self, name: str) -> bool:
        return name in self.contexts

    def assert_not_locked(self, name: str) -> None:
        if self.get_context(name).locked:
            raise errors.ContextIsLocked

    def assert_exists(self, name: str) -> None:
        if not self.is_existing_context(name):
            raise errors.UnknownContext(name)

    def assert_does_not_exist(self, name: str) -> None:
        if self.is_existing_context(name):
            raise errors.ContextAlreadyExists(name)

    def register_context(self, name: str, replace: bool = False) -> Context:
        """ Adds a context falling back to the master context and returns it.

        With ``replace=True`` an existing, unlocked context of the same name
        is thrown away, together with its settings and services.

        """
        with self.thread_lock:
            if not replace:
                self.assert_does_not_exist(name)
            elif self.is_existing_context(name):
                self.assert_not_locked(name)

            context = Context(name, parent=self.master_context)
            self.contexts[name] = context
            return context

    def get_context(self, name: str) -> Context:
        self.assert_exists(name)
        return self.contexts[name]
