"""
Error taxonomy for the bundle evaluation engine.

NotFound and Validation errors are surfaced to callers unchanged.
Insufficient data is a benign condition: components that meet it log
and return instead of raising. Model persistence failures are raised
because silently losing trained weights is not acceptable.
"""


class BundleEngineError(Exception):
    """Base class for all engine errors."""


class NotFoundError(BundleEngineError):
    """A referenced record does not exist."""

    entity = "Record"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity} not found: {entity_id}")


class ProductNotFoundError(NotFoundError):
    entity = "Product"


class ReviewNotFoundError(NotFoundError):
    entity = "Review"


class BundleNotFoundError(NotFoundError):
    entity = "Bundle"


class UserNotFoundError(NotFoundError):
    entity = "User"


class ValidationError(BundleEngineError):
    """Malformed or missing input. Raised before any write happens."""


class DuplicateKeyError(ValidationError):
    """A unique index on a collection would be violated."""

    def __init__(self, collection: str, fields, values):
        self.collection = collection
        self.fields = tuple(fields)
        self.values = tuple(values)
        super().__init__(
            f"Duplicate key in {collection} for {self.fields}: {self.values}"
        )


class DuplicateReviewError(ValidationError):
    """The user has already reviewed this product."""

    def __init__(self, user_id: str, product_id: str):
        self.user_id = user_id
        self.product_id = product_id
        super().__init__(f"User {user_id} has already reviewed product {product_id}")


class ImmutableFieldError(ValidationError):
    """A patch tried to change a field that is fixed after creation."""

    def __init__(self, collection: str, field_name: str):
        self.collection = collection
        self.field_name = field_name
        super().__init__(f"Field '{field_name}' of {collection} cannot be changed")


class BundleAccessDeniedError(BundleEngineError):
    """The caller does not own the bundle (and it is not public)."""

    def __init__(self, bundle_id: str, user_id: str, action: str = "view"):
        self.bundle_id = bundle_id
        self.user_id = user_id
        self.action = action
        super().__init__(f"User {user_id} is not authorized to {action} bundle {bundle_id}")


class InsufficientDataError(BundleEngineError):
    """Preconditions for training or merging are not met."""


class ModelPersistenceError(BundleEngineError):
    """Saving model weights failed."""
