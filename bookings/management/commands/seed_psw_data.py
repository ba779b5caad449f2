"""
Management command to populate the database with sample clients and workers.

Handy for local development and demos of the matching endpoints.
"""

from django.core.management.base import BaseCommand
from bookings import services


class Command(BaseCommand):
    help = 'Seed sample clients and PSW workers with weekly availability'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clients',
            type=int,
            default=50,
            help='Number of clients to create (default: 50)'
        )
        parser.add_argument(
            '--workers',
            type=int,
            default=30,
            help='Number of PSW workers to create (default: 30)'
        )
        parser.add_argument(
            '--seed',
            type=int,
            default=None,
            help='Random seed for reproducible data'
        )
        parser.add_argument(
            '--keep',
            action='store_true',
            help='Keep existing clients and workers instead of clearing them'
        )

    def handle(self, *args, **options):
        self.stdout.write(
            f"Seeding {options['clients']} clients and {options['workers']} PSW workers..."
        )

        clients, workers = services.seed_sample_data(
            clients=options['clients'],
            workers=options['workers'],
            seed=options['seed'],
            clear=not options['keep']
        )

        self.stdout.write(
            self.style.SUCCESS(
                f'Successfully seeded {clients} client(s) and {workers} PSW worker(s)'
            )
        )
