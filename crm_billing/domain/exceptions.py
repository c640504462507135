"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class RecordNotFoundError(DomainException):
    """Requested contact, client, installment or expense does not exist"""

    pass


class ScheduleExistsError(DomainException):
    """Client already has installments and regeneration was not confirmed"""

    pass


class InvalidDistributionError(DomainException):
    """Commission distribution names unknown members or does not sum to 100"""

    pass


class InvalidPaymentError(DomainException):
    """Amount already paid exceeds the deal amount"""

    pass


class InvalidPipelineTransitionError(DomainException):
    pass


class UnknownRateCardError(DomainException):
    pass


class UnknownTeamMemberError(DomainException):
    """Name is not part of the configured team roster"""

    pass
