from __future__ import annotations

import pytest
import random
import threading

from assetres.context import settings
from assetres.context.catalog import DatabaseAssetCatalog
from assetres.context.registry import Registry, create_default_registry
from assetres.modules import errors


def test_registry_contexts() -> None:
    r = Registry()

    assert r.master_context.name == 'master'
    assert r.get_context('master') is r.master_context
    assert r.is_existing_context('master')
    assert not r.is_existing_context('studio')

    studio = r.register_context('studio')
    assert r.get_context('studio') is studio
    assert studio.parent is r.master_context
    assert not studio.locked

    with pytest.raises(errors.UnknownContext):
        r.get_context('rental')


def test_assert_existence() -> None:
    r = Registry()

    with pytest.raises(errors.UnknownContext):
        r.assert_exists('studio')

    r.register_context('studio')

    with pytest.raises(errors.ContextAlreadyExists):
        r.register_context('studio')


def test_replace() -> None:
    r = Registry()

    ctx = r.register_context('studio')
    ctx.set_setting('commit_attempts', 5)
    assert ctx.get_setting('commit_attempts') == 5

    ctx = r.register_context('studio', replace=True)
    assert ctx.get_setting('commit_attempts') != 5

    ctx.lock()

    with pytest.raises(errors.ContextIsLocked):
        r.register_context('studio', replace=True)


def test_locked_contexts() -> None:
    r = Registry()

    context = r.register_context('studio')
    context.set_setting('dsn', 'sqlite://')
    context.lock()

    with pytest.raises(errors.ContextIsLocked):
        context.set_setting('dsn', 'sqlite:///other.db')

    assert context.get_setting('dsn') == 'sqlite://'


def test_default_registry() -> None:
    r = create_default_registry()

    master = r.master_context
    assert master.locked

    with pytest.raises(errors.ContextIsLocked):
        master.set_setting('dsn', 'sqlite://')

    studio = r.register_context('studio')
    assert studio.get_setting('dsn') is None
    assert studio.get_setting('availability_policy') == 'overlap'
    assert studio.get_setting('commit_attempts') == 3

    assert isinstance(
        studio.get_service('asset_catalog'), DatabaseAssetCatalog
    )

    with pytest.raises(errors.UnknownService):
        studio.get_service('mailer')

    # the setting docs are generated from the defaults
    assert 'settings.availability_policy' in (settings.__doc__ or '')


def test_master_fallback() -> None:
    r = Registry()

    r.master_context.set_setting('availability_policy', 'daily_peak')

    studio = r.register_context('studio')
    assert studio.get_setting('availability_policy') == 'daily_peak'

    studio.set_setting('availability_policy', 'overlap')
    assert studio.get_setting('availability_policy') == 'overlap'

    rental = r.register_context('rental')
    assert rental.get_setting('availability_policy') == 'daily_peak'


def test_services() -> None:
    r = Registry()

    r.master_context.set_service('service', factory=lambda ctx: object())
    first_call = r.master_context.get_service('service')
    second_call = r.master_context.get_service('service')

    assert first_call is not second_call


def test_services_cache() -> None:
    r = Registry()

    r.master_context.set_service(
        'service', factory=lambda ctx: object(), cache=True
    )

    first_call = r.master_context.get_service('service')
    second_call = r.master_context.get_service('service')

    assert first_call is second_call


def test_stoppable_services_are_stopped() -> None:
    from assetres.context.core import StoppableService

    stopped = []

    class Service(StoppableService):
        def stop_service(self) -> None:
            stopped.append(self)

    r = Registry()
    context = r.register_context('studio')

    first = Service()
    context.set('service/mailer', first)
    context.set('service/mailer', Service())

    assert stopped == [first]


def test_threading_contexts() -> None:
    r = Registry()

    class Application(threading.Thread):

        def __init__(self, name: str, registry: Registry) -> None:
            threading.Thread.__init__(self)
            self.registry = registry
            self.name = name
            self.result: str | None = None

        def run(self) -> None:
            context = self.registry.register_context(self.name, replace=True)
            context.set_setting('dsn', f'sqlite:///{self.name}.db')

            self.result = self.registry.get_context(self.name).name

    for i in range(0, 25):

        threads = [
            Application('one', r),
            Application('two', r),
            Application('three', r),
            Application('four', r)
        ]

        random.shuffle(threads)

        for t in threads:
            t.start()

        for t in threads:
            t.join()

        results = [t.result for t in threads]
        assert sorted(results) == sorted(['one', 'two', 'three', 'four'])  # type: ignore[type-var]

    for name in ('one', 'two', 'three', 'four'):
        assert r.get_context(name).get_setting('dsn') == f'sqlite:///{name}.db'
