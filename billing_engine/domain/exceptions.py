"""Domain-specific exceptions"""


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


class TransientStoreError(DomainException):
    """Persistence layer failed (save conflict, connectivity); retried on the next run"""

    pass


class ConfigurationError(DomainException):
    """Referenced configuration data is missing or inconsistent"""

    pass


class CardNotFoundError(ConfigurationError):
    """Invoice creation referenced a credit card that does not exist"""

    def __init__(self, card_id: int):
        super().__init__(f"Credit card {card_id} not found")
        self.card_id = card_id
