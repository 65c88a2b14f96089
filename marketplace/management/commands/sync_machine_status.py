# Sync Machine Status Management Command
from django.core.management.base import BaseCommand
from django.db import transaction
from marketplace.models import HeavyMachine, derive_rental_status


class Command(BaseCommand):
    help = 'Recomputes available/rented status of heavy machines from their rental records.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Run the command without saving changes to the database.',
        )
        parser.add_argument(
            '--batch-size',
            type=int,
            default=500,
            help='Number of machines read per database round trip.',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        batch_size = options['batch_size']

        self.stdout.write('Checking machine status against rentals...')

        # Sold, reserved and maintenance are set explicitly and never derived
        machines = (
            HeavyMachine.objects.active()
            .filter(status__in=[HeavyMachine.STATUS_AVAILABLE, HeavyMachine.STATUS_RENTED])
            .prefetch_related('rentals')
            .iterator(chunk_size=batch_size)
        )

        count = 0
        changed = 0

        for machine in machines:
            count += 1
            expected = derive_rental_status(machine.rentals.all())
            if expected == machine.status:
                continue

            changed += 1
            if dry_run:
                self.stdout.write(
                    f'  [DRY-RUN] Machine {machine.id} ({machine.name}): {machine.status} -> {expected}'
                )
                continue

            with transaction.atomic():
                locked = HeavyMachine.objects.select_for_update().get(pk=machine.pk)
                locked.status = derive_rental_status(locked.rentals.all())
                locked.save(update_fields=['status', 'last_updated_at'])
            self.stdout.write(f'  Machine {machine.id} ({machine.name}): {machine.status} -> {locked.status}')

        self.stdout.write(f'Processed {count} machines, {changed} out of sync.')

        if dry_run:
            self.stdout.write(self.style.SUCCESS('Dry run completed. No changes saved.'))
        else:
            self.stdout.write(self.style.SUCCESS('Machine status sync completed successfully.'))
