"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class NotFoundError(DomainException):
    """Entity id does not resolve"""

    pass


class UnauthorizedError(DomainException):
    """Entity belongs to another user"""

    pass


class InvalidInputError(DomainException):
    """Missing, malformed or out-of-range input"""

    pass


class InsufficientFundsError(DomainException):
    """Bank account balance would go negative"""

    pass


class InsufficientCreditError(DomainException):
    """Card available balance would go negative"""

    pass


class AlreadyPaidError(DomainException):
    """Invoice is already fully paid"""

    pass


class InvalidStateError(DomainException):
    """Operation not allowed in the entity's current state"""

    pass
