"""
services/errors.py — Error taxonomy for catalog ingestion and reads

Business Rules:
- CatalogError carries the HTTP status the read API answers with
- UnresolvedReferenceError is raised inside one batch item and caught by
  the batch runner; it never aborts the batch
- NoPriceFound is a 404 reported to the caller, not a server error

Called by: services/*, main.py (exception handler)
"""


class CatalogError(Exception):
    status_code = 400

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class NotFoundError(CatalogError):
    status_code = 404


class InvalidContextError(CatalogError):
    status_code = 400


class NoPriceFound(NotFoundError):
    def __init__(self, message: str = "No matching price found"):
        super().__init__(message)


class UnresolvedReferenceError(CatalogError):
    status_code = 422
