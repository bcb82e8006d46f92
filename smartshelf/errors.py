from __future__ import annotations


class InventoryError(Exception):
    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'error': self.message}


class ValidationError(InventoryError):
    status_code = 400

    def __init__(self, message: str, *, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.fields:
            payload['fields'] = self.fields
        return payload


class NotFoundError(InventoryError):
    status_code = 404


class ConflictError(InventoryError):
    status_code = 409

    def __init__(self, message: str, *, fields: list[str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or []

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.fields:
            payload['fields'] = self.fields
        return payload


class AuthError(InventoryError):
    status_code = 401

    def __init__(self, message: str, *, status_code: int = 401) -> None:
        super().__init__(message)
        self.status_code = status_code


class UpstreamError(InventoryError):
    """Failure reported by the external catalog; the upstream body is kept for diagnostics."""

    status_code = 500

    def __init__(self, message: str, *, upstream_status: int | None = None, body: str | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
        self.body = body

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.body:
            payload['details'] = self.body
        if self.upstream_status is not None:
            payload['upstreamStatus'] = self.upstream_status
        return payload


class InternalError(InventoryError):
    status_code = 500
