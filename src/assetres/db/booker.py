from __future__ import annotations

import logging
import sedate
import sqlite3

from contextlib import contextmanager
from psycopg2.extensions import TransactionRollbackError
from sqlalchemy.exc import SQLAlchemyError

from assetres.context.core import ContextServicesMixin
from assetres.db.availability import calculate_availability
from assetres.db.models import ORMBase, Asset, AssetKit, AssetKitItem
from assetres.db.models import Reservation, ReservationAsset
from assetres.db.models.reservation import PRIORITIES
from assetres.db.models.reservation import STATUSES
from assetres.db.models.reservation import TERMINAL_STATUSES
from assetres.db.queries import Queries
from assetres.modules import errors
from assetres.modules import events
from assetres.modules import utils


from typing import Any
from typing import TypeVar
from typing import TYPE_CHECKING
if TYPE_CHECKING:
    from collections.abc import Callable
    from collections.abc import Collection
    from collections.abc import Iterable
    from collections.abc import Iterator
    from datetime import date, datetime, time
    from sqlalchemy.orm import Query
    from typing_extensions import ParamSpec, Self
    from uuid import UUID

    from assetres.context.core import Context
    from assetres.db.availability import AssetAvailability, Booking
    from assetres.modules.utils import AssetRequest, Requests

    _P = ParamSpec('_P')
    _T = TypeVar('_T')


log = logging.getLogger('assetres')


#: Fields of a reservation which may be changed without looking at the
#: availability of its assets
PLAIN_FIELDS = frozenset((
    'title',
    'project_name',
    'description',
    'start_time',
    'end_time',
    'location',
    'notes',
    'team_members',
    'priority',
    'reserved_by',
    'status',
))

#: Fields which change what a reservation commits
COMMITTING_FIELDS = frozenset(('start_date', 'end_date'))

KIT_FIELDS = frozenset(('name', 'description', 'category'))


def is_serialization_failure(error: BaseException | None) -> bool:
    """ True if the error (or any error it was raised from) was caused by
    the database aborting a transaction because of a concurrent one.

    On PostgreSQL that is a serialization failure. SQLite instead gives up
    with "database is locked" once its busy timeout ran out.

    """
    while error is not None:
        orig = getattr(error, 'orig', None)

        if isinstance(orig, TransactionRollbackError):
            return True

        if isinstance(orig, sqlite3.OperationalError):
            if 'database is locked' in str(orig):
                return True

        error = error.__cause__
    return False


class Booker(ContextServicesMixin):
    """ The Booker reserves the assets of a single organization. It is the
    main part of the API.

    Every mutating method checks its input, checks the availability of the
    requested assets where needed and writes its changes inside a savepoint.
    Either the whole change is written, or none of it. Committing the
    transaction is left to the caller, see :meth:`serialized`.

    """

    def __init__(
        self,
        context: Context,
        organization_id: UUID | str,
        reservation_cls: type[Reservation] = Reservation
    ):
        """ Initializes a new Booker instance.

        :context:
            The :class:`assetres.context.core.Context` this booker should
            operate on. Acquire a context by using
            :func:`assetres.context.registry.Registry.register_context`.

        :organization_id:
            The tenant. All records read or written by this booker belong
            to this organization. Records of other organizations are
            treated as if they did not exist.

        """

        self.context = context
        self.queries = Queries(context)

        self.organization_id = utils.as_uuid(
            organization_id, field='organization_id'
        )
        self.reservation_cls = reservation_cls

    def clone(self) -> Self:
        """ Clones the booker. The result will be a new booker using the
        same context, organization and reservation class.

        """

        return self.__class__(
            self.context,
            self.organization_id,
            self.reservation_cls
        )

    def setup_database(self) -> None:
        """ Creates the tables and indices required for assetres. This needs
        to be called once per database. Multiple invocations won't hurt but
        they are unnecessary.

        """
        ORMBase.metadata.create_all(self.session.bind)

    def serialized(
        self,
        operation: Callable[_P, _T],
        *args: _P.args,
        **kwargs: _P.kwargs
    ) -> _T:
        """ Runs the given operation and commits the transaction.

        If the database aborts the transaction because it conflicts with
        another one (e.g. two bookings of the same asset at the same time,
        see :func:`is_serialization_failure`) the operation is run again,
        up to :ref:`settings.commit_attempts` times. The operation has to be
        repeatable for this to work, which all operations of the booker
        are::

            reservation = booker.serialized(
                booker.create_reservation,
                'Shooting', date(2024, 1, 1), date(2024, 1, 5),
                assets={camera.id: 2}
            )

        Other database errors result in a
        :class:`~assetres.modules.errors.PersistenceError`. In any error
        case the transaction is rolled back.

        """

        attempts = self.context.get_setting('commit_attempts')
        assert attempts >= 1

        for attempt in range(1, attempts + 1):
            try:
                result = operation(*args, **kwargs)
                self.commit()
            except (SQLAlchemyError, errors.PersistenceError) as e:
                self.rollback()

                if attempt < attempts and is_serialization_failure(e):
                    log.info(
                        'Transaction of organization %s could not be '
                        'serialized, retrying (%d/%d)',
                        self.organization_id, attempt, attempts
                    )
                    continue

                if isinstance(e, errors.PersistenceError):
                    raise

                log.error(
                    'Commit failed for organization %s',
                    self.organization_id, exc_info=True
                )
                raise errors.PersistenceError(str(e)) from e
            except errors.AssetresError:
                self.rollback()
                raise
            else:
                return result

        raise AssertionError('unreachable')

    @contextmanager
    def _write(self, action: str) -> Iterator[None]:
        """ Writes the changes made inside the block in a savepoint. If the
        database refuses any of it, none of it is kept.

        """
        try:
            with self.begin_nested():
                yield
        except SQLAlchemyError as e:
            log.error(
                'Could not %s for organization %s',
                action, self.organization_id, exc_info=True
            )
            raise errors.PersistenceError(
                f'Could not {action}, please try again'
            ) from e

    def _prepare_range(
        self,
        start: date | str,
        end: date | str
    ) -> tuple[date, date]:
        return utils.validate_range(
            utils.as_date(start, field='start_date'),
            utils.as_date(end, field='end_date')
        )

    def _prepare_requests(
        self,
        assets: Requests | None,
        kits: Iterable[UUID | str] | None
    ) -> list[AssetRequest]:
        """ Expands the kits and merges them with the requested assets. """

        requests = utils.normalize_requests(assets or ())

        for kit_id in kits or ():
            requests.extend(self.expand_kit(kit_id))

        requests = utils.normalize_requests(requests)

        if not requests:
            raise errors.ValidationError(
                'At least one asset is required', field='assets'
            )

        return requests

    @staticmethod
    def _validate_choice(
        value: str,
        choices: Collection[str],
        field: str
    ) -> str:
        if value not in choices:
            raise errors.ValidationError(
                f'{value!r} is not one of {", ".join(choices)}', field=field
            )
        return value

    @staticmethod
    def _validate_title(title: str | None, field: str = 'title') -> str:
        if title is not None and not isinstance(title, str):
            raise errors.ValidationError(
                f'The {field} must be text, not {title!r}', field=field
            )

        title = (title or '').strip()
        if not title:
            raise errors.ValidationError(f'A {field} is required', field=field)
        return title

    def managed_reservations(self) -> Query[Reservation]:
        """ The reservations managed by this booker / organization. """
        query = self.session.query(self.reservation_cls)
        query = query.filter(
            self.reservation_cls.organization_id == self.organization_id
        )

        return query

    def managed_reservation_assets(self) -> Query[ReservationAsset]:
        """ The reserved assets managed by this booker / organization. """
        ids = self.managed_reservations().with_entities(Reservation.id)

        query = self.session.query(ReservationAsset)
        query = query.filter(ReservationAsset.reservation_id.in_(ids))

        return query

    def managed_kits(self) -> Query[AssetKit]:
        query = self.session.query(AssetKit)
        query = query.filter(AssetKit.organization_id == self.organization_id)

        return query

    def managed_assets(self) -> Query[Asset]:
        query = self.session.query(Asset)
        query = query.filter(Asset.organization_id == self.organization_id)

        return query

    def extinguish_managed_records(self) -> None:
        """ WARNING:
        Completely removes any trace of the records managed by this booker.
        That means all reservations, kits and assets of the organization!

        """
        kits = self.managed_kits().with_entities(AssetKit.id)
        items = self.session.query(AssetKitItem)
        items = items.filter(AssetKitItem.kit_id.in_(kits))

        self.managed_reservation_assets().delete('fetch')
        self.managed_reservations().delete('fetch')
        items.delete('fetch')
        self.managed_kits().delete('fetch')
        self.managed_assets().delete('fetch')

    def check_availability(
        self,
        requests: Requests,
        start_date: date | str,
        end_date: date | str,
        exclude_reservation_id: UUID | str | None = None
    ) -> list[AssetAvailability]:
        """ Checks if the requested assets can be booked between start_date
        and end_date (both inclusive). Nothing is written.

        :requests:
            The assets and quantities to check. Either a dictionary of asset
            ids and quantities, or a list of (asset id, quantity) tuples, or
            a list of asset ids (each with a quantity of one).

        :exclude_reservation_id:
            A reservation which should not be taken into account, usually
            the reservation that is being changed.

        Returns a list with a
        :class:`~assetres.db.availability.AssetAvailability` for each
        requested asset, in the order of the request.

        Assets which do not exist, which belong to another organization or
        which are not active are never available.

        """
        normalized = utils.normalize_requests(requests)

        if not normalized:
            raise errors.ValidationError(
                'At least one asset is required', field='assets'
            )

        start, end = self._prepare_range(start_date, end_date)

        if exclude_reservation_id is not None:
            exclude_reservation_id = utils.as_uuid(
                exclude_reservation_id, field='exclude_reservation_id'
            )

        return self._availability(
            normalized, start, end, exclude_reservation_id
        )

    def _availability(
        self,
        requests: list[AssetRequest],
        start: date,
        end: date,
        exclude_reservation_id: UUID | None = None,
        lock: bool = False
    ) -> list[AssetAvailability]:

        ids = [r.asset_id for r in requests]

        assets = {
            asset.id: asset for asset in
            self.asset_catalog.get_assets_by_ids(
                self.session, self.organization_id, ids, lock=lock
            )
        }

        bookings = self.queries.committed_bookings(
            self.organization_id, ids, start, end, exclude_reservation_id
        )

        return calculate_availability(
            requests, assets, bookings, start, end, self.availability_policy
        )

    def _ensure_available(
        self,
        requests: list[AssetRequest],
        start: date,
        end: date,
        exclude_reservation_id: UUID | None = None
    ) -> list[AssetAvailability]:
        """ Raises a ConflictError if any of the requested assets cannot be
        booked. The requested assets stay locked until the end of the
        transaction.

        """

        availability = self._availability(
            requests, start, end, exclude_reservation_id, lock=True
        )

        if not all(a.is_available for a in availability):
            error = errors.ConflictError(availability)
            log.warning(
                'Booking conflict for organization %s between %s and %s: %s',
                self.organization_id, start, end, error
            )
            raise error

        return availability

    def create_reservation(
        self,
        title: str,
        start_date: date | str,
        end_date: date | str,
        assets: Requests | None = None,
        kits: Iterable[UUID | str] | None = None,
        status: str = 'pending',
        priority: str = 'normal',
        project_name: str | None = None,
        description: str | None = None,
        start_time: time | str | None = None,
        end_time: time | str | None = None,
        location: str | None = None,
        team_members: Iterable[UUID | str] | None = None,
        notes: str | None = None,
        reserved_by: UUID | str | None = None
    ) -> Reservation:
        """ Reserves the given assets between start_date and end_date (both
        inclusive) and returns the new reservation.

        The reservation is only written if all requested assets are
        available, otherwise a
        :class:`~assetres.modules.errors.ConflictError` is raised with the
        availability of each requested asset.

        :assets:
            The assets and quantities to reserve. See
            :meth:`check_availability`.

        :kits:
            The ids of kits to reserve. Kits are expanded into their assets
            and added to the requested assets. The reservation does not
            remember the kits it was made from.

        :status:
            The initial status, one of pending, confirmed or active.

        :start_time / end_time:
            Times of the day (or HH:MM strings). They are shown to the user
            but they do not influence the availability.

        """

        title = self._validate_title(title)
        start, end = self._prepare_range(start_date, end_date)

        status = self._validate_choice(status, STATUSES, 'status')
        if status in TERMINAL_STATUSES:
            raise errors.ValidationError(
                f'A reservation cannot be created as {status}', field='status'
            )

        priority = self._validate_choice(priority, PRIORITIES, 'priority')
        start_time = utils.as_time(start_time, field='start_time')
        end_time = utils.as_time(end_time, field='end_time')
        team_members = utils.unique(team_members)

        requests = self._prepare_requests(assets, kits)
        self._ensure_available(requests, start, end)

        reservation = self.reservation_cls(
            organization_id=self.organization_id,
            title=title,
            project_name=project_name,
            description=description,
            start_date=start,
            end_date=end,
            start_time=start_time,
            end_time=end_time,
            location=location,
            status=status,
            priority=priority,
            reserved_by=str(reserved_by) if reserved_by else None,
            team_members=team_members,
            notes=notes
        )

        for request in requests:
            reservation.assets.append(ReservationAsset(
                asset_id=request.asset_id,
                quantity=request.quantity
            ))

        with self._write('create the reservation'):
            self.session.add(reservation)
            self.session.flush()

        log.info(
            'Created reservation %s for organization %s (%s - %s, %d assets)',
            reservation.id, self.organization_id, start, end, len(requests)
        )

        events.on_reservation_created(self.context, reservation)

        return reservation

    def update_reservation(
        self,
        reservation_id: UUID | str,
        assets: Requests | None = None,
        kits: Iterable[UUID | str] | None = None,
        **patch: Any
    ) -> Reservation:
        """ Changes the given reservation.

        The title, description, location, notes, team members, priority,
        times, the reservee and the status may always be changed (the status
        has to follow the lifecycle of a reservation though).

        If the dates or the assets change, the availability is checked
        again, without taking the reservation itself into account. If any
        asset is not available a
        :class:`~assetres.modules.errors.ConflictError` is raised and none
        of the changes are applied.

        :assets / kits:
            If either is given, they define the complete set of assets of
            the reservation (see :meth:`create_reservation`). Assets not
            requested anymore are removed, new ones are added and the
            quantities of the others are updated.

        """

        reservation = self.reservation_by_id(reservation_id)

        unknown = set(patch) - PLAIN_FIELDS - COMMITTING_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise errors.ValidationError(
                f'{field} cannot be changed', field=field
            )

        changes: dict[str, Any] = {}

        if 'title' in patch:
            changes['title'] = self._validate_title(patch['title'])

        for name in ('project_name', 'description', 'location', 'notes'):
            if name in patch:
                changes[name] = patch[name]

        for name in ('start_time', 'end_time'):
            if name in patch:
                changes[name] = utils.as_time(patch[name], field=name)

        if 'team_members' in patch:
            changes['team_members'] = utils.unique(patch['team_members'])

        if 'priority' in patch:
            changes['priority'] = self._validate_choice(
                patch['priority'], PRIORITIES, 'priority'
            )

        if 'reserved_by' in patch:
            reserved_by = patch['reserved_by']
            changes['reserved_by'] = str(reserved_by) if reserved_by else None

        old_status = reservation.status
        new_status = old_status

        if 'status' in patch:
            new_status = self._validate_choice(
                patch['status'], STATUSES, 'status'
            )

            if not reservation.can_change_status(new_status):
                raise errors.InvalidStatusTransition(old_status, new_status)

        old_dates = reservation.dates
        start, end = self._prepare_range(
            patch.get('start_date', reservation.start_date),
            patch.get('end_date', reservation.end_date)
        )
        dates_changed = (start, end) != old_dates

        requests = None
        if assets is not None or kits is not None:
            requests = self._prepare_requests(assets, kits)

        assets_changed = requests is not None and (
            {r.asset_id: r.quantity for r in requests}
            != {a.asset_id: a.quantity for a in reservation.assets}
        )

        # cancelled reservations do not hold anything, so there's nothing
        # they could conflict with
        if (dates_changed or assets_changed) and new_status != 'cancelled':
            self._ensure_available(
                requests or reservation.requests(),
                start,
                end,
                exclude_reservation_id=reservation.id
            )

        with self._write('update the reservation'):
            for name, value in changes.items():
                setattr(reservation, name, value)

            reservation.start_date = start
            reservation.end_date = end
            reservation.status = new_status

            if assets_changed:
                assert requests is not None
                self._replace_assets(reservation, requests)

            self.session.flush()

        log.info(
            'Updated reservation %s of organization %s',
            reservation.id, self.organization_id
        )

        if dates_changed:
            events.on_reservation_dates_changed(
                self.context,
                reservation,
                old_dates=old_dates,
                new_dates=(start, end)
            )

        if new_status != old_status:
            log.info(
                'Reservation %s changed from %s to %s',
                reservation.id, old_status, new_status
            )
            events.on_reservation_status_changed(
                self.context,
                reservation,
                old_status=old_status,
                new_status=new_status
            )

        events.on_reservation_updated(self.context, reservation)

        return reservation

    def _replace_assets(
        self,
        reservation: Reservation,
        requests: list[AssetRequest]
    ) -> None:
        """ Makes the assets of the reservation match the requests. The rows
        of assets which are still requested are kept (with their check-out
        and check-in times).

        """

        wanted = {r.asset_id: r.quantity for r in requests}

        for reserved in list(reservation.assets):
            if reserved.asset_id in wanted:
                reserved.quantity = wanted.pop(reserved.asset_id)
            else:
                reservation.assets.remove(reserved)

        # the removed rows have to be gone before new ones are added
        self.session.flush()

        for asset_id, quantity in wanted.items():
            reservation.assets.append(ReservationAsset(
                asset_id=asset_id,
                quantity=quantity
            ))

    def change_status(
        self,
        reservation_id: UUID | str,
        status: str
    ) -> Reservation:
        """ Moves the reservation to the given status. Possible changes are:

        - pending -> confirmed, active or cancelled
        - confirmed -> active or cancelled
        - active -> completed or cancelled

        Completed and cancelled reservations cannot be changed anymore.

        """
        return self.update_reservation(reservation_id, status=status)

    def cancel_reservation(self, reservation_id: UUID | str) -> Reservation:
        """ Cancels the reservation. Its assets are available again to other
        reservations, but the reservation is kept.

        """
        return self.change_status(reservation_id, 'cancelled')

    def delete_reservation(self, reservation_id: UUID | str) -> None:
        """ Removes the reservation and its assets, regardless of its
        status.

        """

        reservation = self.reservation_by_id(reservation_id)

        with self._write('delete the reservation'):
            self.session.delete(reservation)
            self.session.flush()

        events.on_reservation_removed(self.context, reservation)

        log.info(
            'Deleted reservation %s of organization %s',
            reservation.id, self.organization_id
        )

    def reservation_by_id(self, reservation_id: UUID | str) -> Reservation:
        query = self.managed_reservations()
        query = query.filter(
            Reservation.id == utils.as_uuid(reservation_id, field='id')
        )

        reservation = query.first()

        if reservation is None:
            raise errors.NotFoundError('reservation', reservation_id)

        return reservation

    def reservations(
        self,
        start_date: date | str | None = None,
        end_date: date | str | None = None,
        status: str | Collection[str] | None = None,
        asset_id: UUID | str | None = None,
        include_cancelled: bool = True
    ) -> list[Reservation]:
        """ Returns the reservations of the organization, ordered by their
        start date (and the latest first if they start on the same day).

        :start_date / end_date:
            Only returns reservations overlapping the given range. If only
            one of them is given the range is open on the other end.

        :status:
            A status or a list of statuses to include.

        :asset_id:
            Only include reservations holding the given asset.

        """

        query = self.managed_reservations()

        if start_date is not None:
            start = utils.as_date(start_date, field='start_date')
            query = query.filter(Reservation.end_date >= start)

        if end_date is not None:
            end = utils.as_date(end_date, field='end_date')
            query = query.filter(Reservation.start_date <= end)

        if status is not None:
            statuses = [status] if isinstance(status, str) else list(status)
            for s in statuses:
                self._validate_choice(s, STATUSES, 'status')
            query = query.filter(Reservation.status.in_(statuses))

        if not include_cancelled:
            query = self.queries.committing_reservations(query)

        if asset_id is not None:
            reserved = self.session.query(ReservationAsset.reservation_id)
            reserved = reserved.filter(
                ReservationAsset.asset_id == utils.as_uuid(
                    asset_id, field='asset_id'
                )
            )
            query = query.filter(Reservation.id.in_(reserved))

        query = query.order_by(
            Reservation.start_date,
            Reservation.created.desc()
        )

        return query.all()

    def bookings_for_asset(
        self,
        asset_id: UUID | str,
        start_date: date | str,
        end_date: date | str
    ) -> list[Booking]:
        """ Returns what is committed of the given asset between start_date
        and end_date, e.g. to render a calendar of the asset.

        """
        start, end = self._prepare_range(start_date, end_date)

        return self.queries.committed_bookings(
            self.organization_id,
            [utils.as_uuid(asset_id, field='asset_id')],
            start,
            end
        )

    def _reserved_asset(
        self,
        reservation_id: UUID | str,
        asset_id: UUID | str
    ) -> tuple[Reservation, ReservationAsset]:

        reservation = self.reservation_by_id(reservation_id)
        reserved = reservation.asset_by_id(
            utils.as_uuid(asset_id, field='asset_id')
        )

        if reserved is None:
            raise errors.NotFoundError('reserved asset', asset_id)

        return reservation, reserved

    def check_out(
        self,
        reservation_id: UUID | str,
        asset_id: UUID | str,
        when: datetime | None = None
    ) -> ReservationAsset:
        """ Records the physical handoff of the reserved asset. This has no
        influence on the availability.

        """

        reservation, reserved = self._reserved_asset(reservation_id, asset_id)

        if reservation.is_cancelled:
            raise errors.CheckoutError(
                'Assets of cancelled reservations cannot be checked out',
                field='status'
            )

        if reserved.is_checked_out:
            raise errors.CheckoutError(
                'The asset is already checked out', field='asset_id'
            )

        with self._write('check out the asset'):
            reserved.checked_out_at = when or sedate.utcnow()
            reserved.checked_in_at = None
            self.session.flush()

        return reserved

    def check_in(
        self,
        reservation_id: UUID | str,
        asset_id: UUID | str,
        when: datetime | None = None
    ) -> ReservationAsset:
        """ Records the return of a checked out asset. """

        _, reserved = self._reserved_asset(reservation_id, asset_id)

        if not reserved.is_checked_out:
            raise errors.CheckoutError(
                'The asset is not checked out', field='asset_id'
            )

        with self._write('check in the asset'):
            reserved.checked_in_at = when or sedate.utcnow()
            self.session.flush()

        return reserved

    def kit_by_id(self, kit_id: UUID | str) -> AssetKit:
        query = self.managed_kits()
        query = query.filter(AssetKit.id == utils.as_uuid(kit_id, 'kit_id'))

        kit = query.first()

        if kit is None:
            raise errors.NotFoundError('kit', kit_id)

        return kit

    def kits(self, category: str | None = None) -> list[AssetKit]:
        """ Returns the kits of the organization, the latest first. """
        query = self.managed_kits()

        if category is not None:
            query = query.filter(AssetKit.category == category)

        return query.order_by(AssetKit.created.desc(), AssetKit.name).all()

    def expand_kit(self, kit_id: UUID | str) -> list[AssetRequest]:
        """ Returns the assets and quantities of the given kit, in the order
        they were added to the kit.

        """
        kit = self.kit_by_id(kit_id)
        requests = kit.requests()

        events.on_kit_expanded(self.context, kit.id, requests)

        return requests

    def _validate_kit_items(
        self,
        items: Requests | None
    ) -> list[AssetRequest]:
        """ Kit items have to point to assets of the organization. """

        requests = utils.normalize_requests(items or (), field='items')
        ids = [r.asset_id for r in requests]

        known = {
            asset.id for asset in self.asset_catalog.get_assets_by_ids(
                self.session, self.organization_id, ids
            )
        }

        for asset_id in ids:
            if asset_id not in known:
                raise errors.NotFoundError('asset', asset_id)

        return requests

    def create_kit(
        self,
        name: str,
        items: Requests | None = None,
        description: str | None = None,
        category: str | None = None,
        created_by: UUID | str | None = None
    ) -> AssetKit:
        """ Creates a kit with the given items (assets and quantities, see
        :meth:`check_availability`).

        """

        name = self._validate_title(name, field='name')
        requests = self._validate_kit_items(items)

        kit = AssetKit(
            organization_id=self.organization_id,
            name=name,
            description=description,
            category=category,
            created_by=str(created_by) if created_by else None
        )

        for request in requests:
            kit.items.append(AssetKitItem(
                asset_id=request.asset_id,
                quantity=request.quantity
            ))

        with self._write('create the kit'):
            self.session.add(kit)
            self.session.flush()

        log.info(
            'Created kit %s for organization %s', kit.id, self.organization_id
        )

        return kit

    def update_kit(
        self,
        kit_id: UUID | str,
        items: Requests | None = None,
        **patch: Any
    ) -> AssetKit:
        """ Changes the name, description or category of a kit. If items
        are given, they replace the items of the kit.

        Reservations made with this kit are not affected.

        """

        kit = self.kit_by_id(kit_id)

        unknown = set(patch) - KIT_FIELDS
        if unknown:
            field = sorted(unknown)[0]
            raise errors.ValidationError(
                f'{field} cannot be changed', field=field
            )

        if 'name' in patch:
            patch['name'] = self._validate_title(patch['name'], field='name')

        requests = None if items is None else self._validate_kit_items(items)

        with self._write('update the kit'):
            for name, value in patch.items():
                setattr(kit, name, value)

            if requests is not None:
                wanted = {r.asset_id: r.quantity for r in requests}

                for item in list(kit.items):
                    if item.asset_id in wanted:
                        item.quantity = wanted.pop(item.asset_id)
                    else:
                        kit.items.remove(item)

                self.session.flush()

                for asset_id, quantity in wanted.items():
                    kit.items.append(AssetKitItem(
                        asset_id=asset_id,
                        quantity=quantity
                    ))

            self.session.flush()

        return kit

    def delete_kit(self, kit_id: UUID | str) -> None:
        """ Removes the kit. Reservations made with it are not affected. """

        kit = self.kit_by_id(kit_id)

        with self._write('delete the kit'):
            self.session.delete(kit)
            self.session.flush()

