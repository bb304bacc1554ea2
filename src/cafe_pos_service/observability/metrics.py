"""Custom metrics for the café POS service."""

from decimal import Decimal

from opentelemetry import metrics

meter = metrics.get_meter("cafe-pos")

cart_mutation_counter = meter.create_counter(
    name="cart_mutation_total",
    description="Total number of cart mutations by operation",
    unit="1",
)

checkout_counter = meter.create_counter(
    name="checkout_total",
    description="Total number of completed checkouts",
    unit="1",
)

# Transaction totals at checkout
checkout_revenue_histogram = meter.create_histogram(
    name="checkout_revenue",
    description="Transaction total at checkout",
    unit="1",
)

cart_conflict_counter = meter.create_counter(
    name="cart_conflict_total",
    description="Draft cart writes rejected by a version mismatch",
    unit="1",
)


def record_cart_mutation(operation: str) -> None:
    """Record a cart mutation.

    Args:
        operation: Mutation name (e.g., "add_to_cart", "apply_transaction_discount")
    """
    cart_mutation_counter.add(1, {"operation": operation})


def record_checkout(total: Decimal, item_count: int) -> None:
    """Record a completed checkout.

    Args:
        total: Transaction total
        item_count: Number of line items in the transaction
    """
    checkout_counter.add(1)
    checkout_revenue_histogram.record(float(total), {"item_count": item_count})


def record_cart_conflict(operation: str) -> None:
    """Record a version conflict on a draft cart write.

    Args:
        operation: Mutation that hit the conflict
    """
    cart_conflict_counter.add(1, {"operation": operation})
