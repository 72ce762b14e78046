from django.core.management.base import BaseCommand


class Command(BaseCommand):
    help = 'Open and auto-resolve stock alerts from current stock and expiry dates'

    def handle(self, *args, **options):
        from stock.services import StockAlertService

        result = StockAlertService.refresh()
        self.stdout.write(self.style.SUCCESS(
            f"Alerts opened: {result['created']}, auto-resolved: {result['resolved']}"
        ))
