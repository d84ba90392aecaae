"""Guest cart expiry — command and handler for deleting idle guest carts.

Meant to be triggered periodically by an external scheduler (cron, K8s
CronJob). Guest carts live for seven days after their last mutation;
authenticated carts never expire.
"""

from datetime import UTC, datetime

import structlog
from protean import handle
from protean.fields import DateTime
from protean.utils.globals import current_domain

from commerce.cart.cart import Cart
from commerce.domain import commerce

logger = structlog.get_logger(__name__)


@commerce.command(part_of="Cart")
class ExpireGuestCarts:
    as_of = DateTime()  # Optional: defaults to now


@commerce.command_handler(part_of=Cart)
class ExpireGuestCartsHandler:
    @handle(ExpireGuestCarts)
    def expire_guest_carts(self, command):
        as_of = command.as_of or datetime.now(UTC)
        repo = current_domain.repository_for(Cart)

        expired = [cart for cart in repo.guest_carts() if cart.is_expired(as_of)]
        if not expired:
            logger.info("No expired guest carts found", as_of=as_of.isoformat())
            return 0

        for cart in expired:
            repo._dao.delete(cart)
            logger.info(
                "Deleted expired guest cart",
                cart_id=str(cart.id),
                session_id=cart.session_id,
                expired_at=str(cart.expires_at),
            )

        logger.info("Guest cart expiry complete", deleted_count=len(expired))
        return len(expired)
