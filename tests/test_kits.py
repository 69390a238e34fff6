from __future__ import annotations

import pytest

from uuid import uuid4 as new_uuid

from assetres.db.models import AssetKitItem
from assetres.modules import errors
from assetres.modules import events
from assetres.modules.utils import AssetRequest


from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from assetres.db.booker import Booker
    from assetres.db.models import Asset


def test_create_kit(
    booker: Booker,
    asset_factory: Callable[..., Asset]
) -> None:

    camera = asset_factory('Camera', quantity=2)
    light = asset_factory('Light', quantity=4)

    kit = booker.create_kit(
        'Interview Kit',
        items=[(light.id, 2), camera.id, (light.id, 1)],
        category='video',
        created_by='anna'
    )
    booker.commit()

    kit = booker.kit_by_id(kit.id)
    assert kit.name == 'Interview Kit'
    assert kit.category == 'video'
    assert kit.created_by == 'anna'
    assert kit.organization_id == booker.organization_id

    # duplicates are merged, the first occurrence defines the order
    assert [(i.asset_id, i.quantity) for i in kit.items] == [
        (light.id, 3),
        (camera.id, 1)
    ]

    assert booker.kits() == [kit]
    assert booker.kits(category='audio') == []


def test_create_kit_validation(
    booker: Booker,
    asset_factory: Callable[..., Asset]
) -> None:

    camera = asset_factory()

    with pytest.raises(errors.ValidationError) as e:
        booker.create_kit(' ', items=[camera.id])
    assert e.value.field == 'name'

    with pytest.raises(errors.ValidationError) as e:
        booker.create_kit('Kit', items={camera.id: 0})
    assert e.value.field == 'items'

    with pytest.raises(errors.NotFoundError) as e:
        booker.create_kit('Kit', items=[camera.id, new_uuid()])
    assert e.value.kind == 'asset'

    assert booker.kits() == []

    # an empty kit is fine
    assert booker.create_kit('Empty').items == []


def test_expand_kit(
    booker: Booker,
    asset_factory: Callable[..., Asset]
) -> None:

    camera = asset_factory(quantity=2)
    light = asset_factory(quantity=4)

    kit = booker.create_kit('Kit', items={camera.id: 1, light.id: 2})

    expanded = []
    events.on_kit_expanded.append(
        lambda context, kit_id, requests: expanded.append(kit_id)
    )

    requests = booker.expand_kit(kit.id)

    assert requests == [
        AssetRequest(camera.id, 1),
        AssetRequest(light.id, 2)
    ]
    assert booker.expand_kit(str(kit.id)) == requests
    assert expanded == [kit.id, kit.id]

    with pytest.raises(errors.NotFoundError) as e:
        booker.expand_kit(new_uuid())
    assert e.value.kind == 'kit'


def test_reserve_kit(
    booker: Booker,
    asset_factory: Callable[..., Asset]
) -> None:

    camera = asset_factory(quantity=2)
    light = asset_factory(quantity=4)

    kit = booker.create_kit('Kit', items={camera.id: 1, light.id: 2})

    reservation = booker.create_reservation(
        'Shoot', '2024-01-01', '2024-01-02',
        assets={light.id: 1},
        kits=[kit.id]
    )

    # the kit is merged with the assets requested directly
    assert [(a.asset_id, a.quantity) for a in reservation.assets] == [
        (light.id, 3),
        (camera.id, 1)
    ]

    # a kit alone is enough
    booker.create_reservation(
        'Other', '2024-02-01', '2024-02-01', kits=[kit.id]
    )

    # two kits need two cameras, one is taken already
    with pytest.raises(errors.ConflictError) as e:
        booker.create_reservation(
            'Double', '2024-01-02', '2024-01-02', kits=[kit.id, kit.id]
        )

    assert {c.asset_id for c in e.value.conflicts} == {camera.id, light.id}

    with pytest.raises(errors.NotFoundError):
        booker.create_reservation(
            'Missing', '2024-03-01', '2024-03-01', kits=[new_uuid()]
        )


def test_kit_changes_leave_reservations_alone(
    booker: Booker,
    asset_factory: Callable[..., Asset]
) -> None:

    camera = asset_factory(quantity=2)
    light = asset_factory(quantity=4)
    tripod = asset_factory(quantity=1)

    kit = booker.create_kit('Kit', items={camera.id: 1, light.id: 2})

    reservation = booker.create_reservation(
        'Shoot', '2024-01-01', '2024-01-02', kits=[kit.id]
    )
    booker.commit()

    booker.update_kit(kit.id, name='New Kit', items={tripod.id: 1})
    booker.commit()

    kit = booker.kit_by_id(kit.id)
    assert kit.name == 'New Kit'
    assert kit.requests() == [AssetRequest(tripod.id, 1)]

    reservation = booker.reservation_by_id(reservation.id)
    assert reservation.requests() == [
        AssetRequest(camera.id, 1),
        AssetRequest(light.id, 2)
    ]

    booker.delete_kit(kit.id)
    booker.commit()

    assert booker.kits() == []
    assert booker.session.query(AssetKitItem).filter(
        AssetKitItem.asset_id == tripod.id
    ).count() == 0

    assert len(booker.reservation_by_id(reservation.id).assets) == 2


def test_update_kit(
    booker: Booker,
    asset_factory: Callable[..., Asset]
) -> None:

    camera = asset_factory(quantity=2)
    light = asset_factory(quantity=4)

    kit = booker.create_kit('Kit', items={camera.id: 1, light.id: 2})

    booker.update_kit(kit.id, description='All you need', category='video')
    assert kit.description == 'All you need'
    assert kit.requests() == [
        AssetRequest(camera.id, 1),
        AssetRequest(light.id, 2)
    ]

    booker.update_kit(kit.id, items=[(light.id, 1), (camera.id, 2)])
    assert sorted(kit.requests()) == sorted([
        AssetRequest(camera.id, 2),
        AssetRequest(light.id, 1)
    ])

    with pytest.raises(errors.ValidationError) as e:
        booker.update_kit(kit.id, organization_id=new_uuid())
    assert e.value.field == 'organization_id'

    with pytest.raises(errors.NotFoundError):
        booker.update_kit(kit.id, items=[new_uuid()])

    with pytest.raises(errors.NotFoundError):
        booker.delete_kit(new_uuid())


def test_kits_are_separated(
    booker: Booker,
    other_booker: Booker,
    asset_factory: Callable[..., Asset]
) -> None:

    camera = asset_factory()
    kit = booker.create_kit('Kit', items=[camera.id])
    booker.commit()

    with pytest.raises(errors.NotFoundError):
        other_booker.kit_by_id(kit.id)

    # the assets of other organizations cannot be put into a kit
    with pytest.raises(errors.NotFoundError):
        other_booker.create_kit('Kit', items=[camera.id])

    assert other_booker.kits() == []
    other_booker.rollback()

