from django.core.management.base import BaseCommand, CommandError


class Command(BaseCommand):
    help = 'Verify that every ingredient stock matches its ledger history'

    def add_arguments(self, parser):
        parser.add_argument('--ingredient', type=int, help='Only check this ingredient id')
        parser.add_argument('--verbose-ok', action='store_true', help='Also list consistent ingredients')

    def handle(self, *args, **options):
        from stock.models import Ingredient
        from stock.services import IngredientService

        ingredient_ids = Ingredient.objects.order_by('id').values_list('id', flat=True)
        if options['ingredient']:
            ingredient_ids = ingredient_ids.filter(id=options['ingredient'])

        checked = 0
        drifted = 0

        for ingredient_id in ingredient_ids:
            result = IngredientService.verify_projection(ingredient_id)
            checked += 1

            if result['consistent']:
                if options['verbose_ok']:
                    self.stdout.write(f"OK   {result['ingredient']}: {result['current_stock']} ({result['entries']} entries)")
                continue

            drifted += 1
            self.stdout.write(self.style.ERROR(
                f"DRIFT {result['ingredient']}: stock {result['current_stock']}, ledger {result['ledger_stock']}"
            ))
            for problem in result['problems']:
                self.stdout.write(f"      {problem}")

        if drifted:
            raise CommandError(f'{drifted} of {checked} ingredient(s) drifted from the ledger')

        self.stdout.write(self.style.SUCCESS(f'Checked {checked} ingredient(s): ledger consistent'))
