from binarydesk.domain.exceptions.domain_errors import (
    ContractViolationError,
    DomainError,
    FeedError,
    OrderRejectedError,
    PersistenceError,
    RejectReason,
)

__all__ = [
    "DomainError",
    "OrderRejectedError",
    "RejectReason",
    "ContractViolationError",
    "FeedError",
    "PersistenceError",
]
