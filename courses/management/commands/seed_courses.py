from django.core.management.base import BaseCommand, CommandError

from courses.seed import SeedFormatError, load_seed_file, seed_courses


class Command(BaseCommand):
    help = 'Create or update catalog courses from a JSON seed file'

    def add_arguments(self, parser):
        parser.add_argument('path', help='JSON array of courses, or {"courses": [...]}')

    def handle(self, *args, **options):
        try:
            items = load_seed_file(options['path'], expected='courses')
            created, updated = seed_courses(items)
        except (OSError, SeedFormatError) as e:
            raise CommandError(str(e))

        self.stdout.write(self.style.SUCCESS(f'Courses seeded: {created} created, {updated} updated'))
