from django.core.management.base import BaseCommand, CommandError

from courses.seed import SeedFormatError, load_seed_file, seed_course_fees


class Command(BaseCommand):
    help = 'Create or update course fees from a JSON seed file, keyed by course slug'

    def add_arguments(self, parser):
        parser.add_argument('path', help='JSON array of fees, or {"fees": [...]}')

    def handle(self, *args, **options):
        try:
            items = load_seed_file(options['path'], expected='fees')
            upserted, missing = seed_course_fees(items)
        except (OSError, SeedFormatError) as e:
            raise CommandError(str(e))

        self.stdout.write(self.style.SUCCESS(f'Course fees seeded: {upserted}'))
        for slug in missing:
            self.stdout.write(self.style.WARNING(f'No course with slug "{slug}"'))
