"""Stock alert resolution — command and handler."""

from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from commerce.domain import commerce
from commerce.errors import NotFound
from commerce.inventory.alert import StockAlert


@commerce.command(part_of="StockAlert")
class ResolveStockAlert:
    alert_id = Identifier(required=True)
    resolved_by = String(required=True, max_length=255)


@commerce.command_handler(part_of=StockAlert)
class ResolveStockAlertHandler:
    @handle(ResolveStockAlert)
    def resolve_stock_alert(self, command):
        repo = current_domain.repository_for(StockAlert)
        try:
            alert = repo.get(command.alert_id)
        except ObjectNotFoundError as exc:
            raise NotFound("Stock alert") from exc
        alert.resolve(command.resolved_by)
        repo.add(alert)
