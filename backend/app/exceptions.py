class InventoryException(Exception):
    pass


class InventoryValidationError(InventoryException, ValueError):
    """Request rejected before any state change."""


class ProductNotFound(InventoryException):
    def __init__(self, product_id: str):
        super().__init__(f"Product not found: {product_id}")
        self.product_id = product_id


class PersistenceError(InventoryException):
    """Loading or saving a collection failed."""
