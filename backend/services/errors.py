"""
Erreurs métier levées par les services.

Elles sont levées AVANT toute mutation et converties en réponse JSON
``{"detail": ...}`` par le handler enregistré dans ``backend.app.main``.
"""

from __future__ import annotations


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    status_code = 400


class NotFoundError(ServiceError):
    status_code = 404


class InvalidStateError(ServiceError):
    status_code = 409


class InsufficientStockError(ServiceError):
    status_code = 409


class IncompleteCountError(InvalidStateError):
    def __init__(self, remaining: int):
        super().__init__(f"Not all items counted ({remaining} remaining)")
        self.remaining = remaining
