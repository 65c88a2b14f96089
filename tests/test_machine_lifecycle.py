"""
Tests for the heavy machine lifecycle.

Test Coverage:
- Renting only from "available"
- Returning recomputes status from the remaining rentals
- Selling from any status except "sold"
- Maintenance entries with an optional forced status
- Administrative status override
- Status derivation from rental records
- Concurrent rentals of one machine: one wins, the other conflicts
"""

import pytest
from datetime import timedelta
from decimal import Decimal
from threading import Barrier, Thread
from time import sleep
from types import SimpleNamespace
from unittest.mock import patch

from django.core.exceptions import ValidationError
from django.db import DatabaseError, connection
from django.utils import timezone

from marketplace.exceptions import InvalidStateError
from marketplace.models import (
    HeavyMachine,
    MachineRental,
    derive_rental_status,
)


@pytest.fixture
def renter(make_user):
    return make_user()


@pytest.mark.django_db
class TestRent:

    def test_rent_available_machine(self, machine, renter):
        rental = machine.rent(renter, notes='Pit 3')

        assert machine.status == HeavyMachine.STATUS_RENTED
        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_RENTED
        assert rental.status == MachineRental.STATUS_ACTIVE
        assert rental.renter == renter
        assert rental.price_per_day == Decimal('4500.00')
        assert machine.current_rental == rental

    def test_explicit_daily_price_wins(self, machine, renter):
        rental = machine.rent(renter, price_per_day=Decimal('3900.00'))
        assert rental.price_per_day == Decimal('3900.00')

    def test_rent_requires_a_daily_price(self, machine, renter):
        machine.rental_price_per_day = None
        machine.save()

        with pytest.raises(ValidationError):
            machine.rent(renter)
        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_AVAILABLE
        assert machine.rentals.count() == 0

    @pytest.mark.parametrize('machine_status', ['rented', 'sold', 'maintenance', 'reserved'])
    def test_rent_unavailable_machine_is_a_conflict(self, machine, renter, machine_status):
        machine.set_status(machine_status)

        with pytest.raises(InvalidStateError) as exc_info:
            machine.rent(renter)

        assert f'status={machine_status}' in exc_info.value.messages[0]
        assert machine.rentals.count() == 0

    def test_end_date_before_start_is_invalid(self, machine, renter):
        start = timezone.now()
        with pytest.raises(ValidationError):
            machine.rent(renter, start_date=start, end_date=start - timedelta(days=1))
        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_AVAILABLE


@pytest.mark.django_db
class TestReturn:

    def test_return_makes_machine_available(self, machine, renter):
        rental = machine.rent(renter)

        returned = machine.return_rental(rental.id)

        assert returned.status == MachineRental.STATUS_RETURNED
        assert returned.returned_at is not None
        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_AVAILABLE
        assert machine.current_rental is None

    def test_machine_stays_rented_while_another_rental_is_outstanding(self, machine, renter, make_user):
        first = machine.rent(renter)
        # A second active rental recorded directly, as legacy data may contain
        MachineRental.objects.create(
            machine=machine,
            renter=make_user(),
            start_date=timezone.now(),
            price_per_day=Decimal('4000.00'),
        )

        machine.return_rental(first.id)

        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_RENTED

    def test_returning_twice_is_a_conflict(self, machine, renter):
        rental = machine.rent(renter)
        machine.return_rental(rental.id)

        with pytest.raises(InvalidStateError):
            machine.return_rental(rental.id)

    def test_unknown_rental(self, machine):
        with pytest.raises(MachineRental.DoesNotExist):
            machine.return_rental(99999)

    def test_rental_of_another_machine_is_not_found(self, machine, manager, renter):
        other = HeavyMachine.objects.create(
            name='Bell B40E', category='dump-truck', model_name='B40E', year=2021,
            rental_price_per_day=Decimal('6000.00'), owner=manager, created_by=manager,
        )
        rental = other.rent(renter)

        with pytest.raises(MachineRental.DoesNotExist):
            machine.return_rental(rental.id)

    def test_return_does_not_override_maintenance(self, machine, renter):
        rental = machine.rent(renter)
        machine.log_maintenance('Hydraulic leak', new_status=HeavyMachine.STATUS_MAINTENANCE)

        machine.return_rental(rental.id)

        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_MAINTENANCE


@pytest.mark.django_db
class TestSell:

    def test_sell_available_machine(self, machine, renter):
        purchase = machine.sell(renter, Decimal('1400000.00'), notes='Auction')

        assert purchase.buyer == renter
        assert purchase.price == Decimal('1400000.00')
        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_SOLD

    def test_sell_rented_machine_keeps_rental_open(self, machine, renter, make_user):
        rental = machine.rent(renter)

        machine.sell(make_user(), Decimal('1000000.00'))

        machine.refresh_from_db()
        rental.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_SOLD
        assert rental.status == MachineRental.STATUS_ACTIVE

    def test_selling_sold_machine_is_a_conflict(self, machine, renter):
        machine.sell(renter, Decimal('1.00'))

        with pytest.raises(InvalidStateError) as exc_info:
            machine.sell(renter, Decimal('2.00'))

        assert exc_info.value.messages == ['Machine already sold']
        assert machine.purchases.count() == 1


@pytest.mark.django_db
class TestMaintenanceAndStatus:

    def test_maintenance_without_status_keeps_status(self, machine):
        record = machine.log_maintenance('Oil change', cost=Decimal('1200.00'), performed_by='Site crew')

        assert record.cost == Decimal('1200.00')
        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_AVAILABLE
        assert machine.maintenance_history.count() == 1

    def test_maintenance_can_force_status(self, machine):
        machine.log_maintenance('Engine overhaul', new_status=HeavyMachine.STATUS_MAINTENANCE)
        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_MAINTENANCE

    def test_maintenance_rejects_unknown_status(self, machine):
        with pytest.raises(ValidationError):
            machine.log_maintenance('Check', new_status='scrapped')
        assert machine.maintenance_history.count() == 0

    def test_set_status_bypasses_lifecycle(self, machine, renter):
        machine.sell(renter, Decimal('5.00'))

        machine.set_status(HeavyMachine.STATUS_AVAILABLE)

        machine.refresh_from_db()
        assert machine.status == HeavyMachine.STATUS_AVAILABLE

    def test_set_status_validates_value(self, machine):
        with pytest.raises(ValidationError):
            machine.set_status('broken')


class TestDeriveRentalStatus:

    def test_no_rentals_means_available(self):
        assert derive_rental_status([]) == 'available'

    def test_outstanding_rental_means_rented(self):
        rentals = [
            SimpleNamespace(status='returned', returned_at=timezone.now()),
            SimpleNamespace(status='active', returned_at=None),
        ]
        assert derive_rental_status(rentals) == 'rented'

    def test_active_but_returned_rental_does_not_count(self):
        rentals = [SimpleNamespace(status='active', returned_at=timezone.now())]
        assert derive_rental_status(rentals) == 'available'

    def test_cancelled_rentals_do_not_count(self):
        rentals = [SimpleNamespace(status='cancelled', returned_at=None)]
        assert derive_rental_status(rentals) == 'available'


@pytest.mark.django_db(transaction=True)
class TestConcurrentRent:
    """Two customers renting the same machine at the same moment."""

    def test_one_rental_wins_and_the_other_conflicts(self, machine, make_user):
        renters = {'A': make_user(), 'B': make_user()}
        outcomes = {}
        barrier = Barrier(2)
        original_save = MachineRental.save

        def slow_save(rental, *args, **kwargs):
            # Widen the gap between checking the status and writing the rental
            sleep(0.3)
            return original_save(rental, *args, **kwargs)

        def rent(label):
            try:
                barrier.wait()
                HeavyMachine.objects.get(pk=machine.pk).rent(renters[label])
                outcomes[label] = 'rented'
            except InvalidStateError:
                outcomes[label] = 'conflict'
            except DatabaseError as e:
                outcomes[label] = f'database error: {e}'
            finally:
                connection.close()

        with patch.object(MachineRental, 'save', slow_save):
            threads = [Thread(target=rent, args=(label,)) for label in renters]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

        assert sorted(outcomes.values()) == ['conflict', 'rented']
        assert MachineRental.objects.filter(machine=machine).count() == 1
        assert HeavyMachine.objects.get(pk=machine.pk).status == HeavyMachine.STATUS_RENTED
