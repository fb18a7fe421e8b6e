from __future__ import annotations


class FacturationError(ValueError):
    """Base des erreurs métier levées par les services."""


class NotFoundError(FacturationError):
    def __init__(self, entity: str, key: str):
        super().__init__(f"{entity} introuvable: {key}")
        self.entity = entity
        self.key = key


class SerieError(FacturationError):
    pass


class SerieNotFoundError(NotFoundError, SerieError):
    def __init__(self, key: str):
        super().__init__("Série de documents", key)


class CategoryError(FacturationError):
    pass


class LoyaltyError(FacturationError):
    pass


class DocumentError(FacturationError):
    pass
