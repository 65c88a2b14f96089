from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase

from marketplace.models import HeavyMachine, User


class SyncMachineStatusCommandTests(TestCase):
    def setUp(self):
        self.manager = User.objects.create_user(
            username='manager', email='manager@mining.test', password='Quarry!Pass2024', role='mineral_manager'
        )
        self.renter = User.objects.create_user(
            username='renter', email='renter@mining.test', password='Quarry!Pass2024', role='customer'
        )

        # Rented, but its status was overwritten to available
        self.drifted_rented = self.make_machine('Komatsu PC200')
        self.drifted_rented.rent(self.renter)
        HeavyMachine.objects.filter(pk=self.drifted_rented.pk).update(status='available')

        # Marked rented without any rental
        self.drifted_available = self.make_machine('Volvo A40G')
        HeavyMachine.objects.filter(pk=self.drifted_available.pk).update(status='rented')

        # Consistent
        self.idle = self.make_machine('Bell B45E')

        # Maintenance is never derived
        self.in_workshop = self.make_machine('Liebherr R 9400')
        self.in_workshop.rent(self.renter)
        HeavyMachine.objects.filter(pk=self.in_workshop.pk).update(status='maintenance')

    def make_machine(self, name):
        return HeavyMachine.objects.create(
            name=name,
            category='excavator',
            brand=name.split()[0],
            model_name=name.split()[-1],
            year=2020,
            purchase_price=Decimal('900000.00'),
            rental_price_per_day=Decimal('3000.00'),
            owner=self.manager,
            created_by=self.manager,
        )

    def status_of(self, machine):
        return HeavyMachine.objects.get(pk=machine.pk).status

    def test_sync_machine_status(self):
        out = StringIO()
        call_command('sync_machine_status', stdout=out)

        self.assertEqual(self.status_of(self.drifted_rented), 'rented')
        self.assertEqual(self.status_of(self.drifted_available), 'available')
        self.assertEqual(self.status_of(self.idle), 'available')
        self.assertEqual(self.status_of(self.in_workshop), 'maintenance')

        output = out.getvalue()
        self.assertIn('Processed 3 machines, 2 out of sync.', output)
        self.assertIn('Machine status sync completed successfully.', output)

    def test_dry_run(self):
        out = StringIO()
        call_command('sync_machine_status', '--dry-run', stdout=out)

        self.assertEqual(self.status_of(self.drifted_rented), 'available')
        self.assertEqual(self.status_of(self.drifted_available), 'rented')

        output = out.getvalue()
        self.assertIn('[DRY-RUN]', output)
        self.assertIn(f'Machine {self.drifted_rented.id} (Komatsu PC200): available -> rented', output)
        self.assertIn('Dry run completed. No changes saved.', output)

    def test_soft_deleted_machines_skipped(self):
        HeavyMachine.objects.filter(pk=self.drifted_available.pk).update(is_active=False)

        out = StringIO()
        call_command('sync_machine_status', '--batch-size', '1', stdout=out)

        self.assertEqual(self.status_of(self.drifted_available), 'rented')
        self.assertIn('Processed 2 machines, 1 out of sync.', out.getvalue())
