"""Service-specific error code refinements.

These codes refine a classified error for one collaborator domain (inventory,
orders, shipping labels) without changing its ``ErrorKind``. Retry and circuit
breaker decisions only ever look at the kind.
"""

# Inventory provider
INVENTORY_ERROR = "INVENTORY_ERROR"
INSUFFICIENT_INVENTORY = "INSUFFICIENT_INVENTORY"

# Order management
ORDER_ERROR = "ORDER_ERROR"

# Shipping rate/label provider
SHIPPING_ERROR = "SHIPPING_ERROR"
INVALID_ADDRESS = "INVALID_ADDRESS"
INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"

REFINEMENT_CODES = frozenset(
    {
        INVENTORY_ERROR,
        INSUFFICIENT_INVENTORY,
        ORDER_ERROR,
        SHIPPING_ERROR,
        INVALID_ADDRESS,
        INSUFFICIENT_FUNDS,
    }
)
