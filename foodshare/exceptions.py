"""
Domain exceptions.

Services raise these for rule violations; the views catch them and flash
``message`` to the user. Store failures are left as ``SQLAlchemyError``.
"""


class FoodShareError(Exception):
    """Base class for errors that carry a user-facing message"""

    category = 'danger'

    def __init__(self, message):
        self.message = message
        super().__init__(self.message)


class NotFoundError(FoodShareError):
    """Requested record does not exist"""


class PermissionDeniedError(FoodShareError):
    """Acting user may not touch this record"""


class InvalidTransitionError(FoodShareError):
    """Status change not allowed from the current state"""


class DuplicateRequestError(FoodShareError):
    """Recipient already has a transaction for this donation"""

    category = 'warning'


class ValidationError(FoodShareError):
    """Input failed a domain rule that the form could not express"""
