from __future__ import annotations

import pytest
from _pytest.fixtures import FixtureLookupError

from assetres import new_booker, registry
from assetres.db.models import Asset
from uuid import uuid4 as new_uuid


from typing import Any
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Generator
    from assetres.db.booker import Booker


def new_test_booker(
    dsn: str,
    context_name: str | None = None,
    organization_id: str | None = None
) -> Booker:

    context_name = context_name or new_uuid().hex
    organization_id = organization_id or new_uuid().hex

    context = registry.register_context(context_name, replace=True)
    context.set_setting('dsn', dsn)

    return new_booker(context=context, organization_id=organization_id)


def discard_test_booker(booker: Booker) -> None:
    try:
        booker.rollback()
        booker.extinguish_managed_records()
        booker.commit()
        booker.close()
    finally:
        booker.session_provider.stop_service()


def add_asset(
    booker: Booker,
    name: str = 'Camera',
    quantity: int = 1,
    **kwargs: Any
) -> Asset:
    """ Adds an asset to the catalog of the booker's organization. """

    asset = Asset(
        organization_id=booker.organization_id,
        name=name,
        quantity=quantity,
        **kwargs
    )
    booker.session.add(asset)
    booker.session.flush()

    return asset


@pytest.fixture
def booker(
    request: pytest.FixtureRequest,
    dsn: str
) -> Generator[Booker, None, None]:

    # clear the events before each test
    from assetres.modules import events
    for event in (e for e in dir(events) if e.startswith('on_')):
        del getattr(events, event)[:]

    try:
        context = request.getfixturevalue('booker_context')
    except FixtureLookupError:
        context = None

    try:
        organization_id = request.getfixturevalue('organization_id')
    except FixtureLookupError:
        organization_id = None

    booker = new_test_booker(dsn, context, organization_id)

    yield booker

    discard_test_booker(booker)


@pytest.fixture
def other_booker(booker: Booker) -> Generator[Booker, None, None]:
    """ A booker of another organization. It shares the context, and with
    it the session, of the booker fixture.

    """

    other = new_booker(context=booker.context, organization_id=new_uuid())

    yield other

    other.rollback()
    other.extinguish_managed_records()
    other.commit()


@pytest.fixture
def asset_factory(booker: Booker) -> Callable[..., Asset]:

    def factory(
        name: str = 'Camera',
        quantity: int = 1,
        **kwargs: Any
    ) -> Asset:
        return add_asset(booker, name, quantity, **kwargs)

    return factory


@pytest.fixture(scope="session")
def dsn(
    tmp_path_factory: pytest.TempPathFactory
) -> Generator[str, None, None]:
    path = tmp_path_factory.mktemp('assetres') / 'assetres.db'
    url = f'sqlite:///{path}'

    booker = new_test_booker(url)
    booker.setup_database()
    booker.commit()

    yield url

    booker.close()
    booker.session_provider.stop_service()
