"""Commerce bounded context: inventory ledger, carts, orders and payments.

Carts are snapshotted into Orders at checkout, the inventory ledger is debited
for every line, and payment gateway callbacks drive the order through its
status state machine.
"""

import structlog
from protean.domain import Domain

commerce = Domain(name="commerce")

logger = structlog.get_logger(__name__)
