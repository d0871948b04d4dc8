"""Asynchroner HTTP-Client für die Nachweis API."""

from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional, Type

import httpx

from .config import AppConfig

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    VALIDATION = "VALIDATION"
    DUPLICATE_NUMBER = "DUPLICATE_NUMBER"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    TRANSPORT = "TRANSPORT"
    PARTIAL = "PARTIAL"


class ApiError(RuntimeError):
    """Fehler beim Zugriff auf die API."""

    code: ErrorCode = ErrorCode.TRANSPORT

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        response: Optional[httpx.Response] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.response = response


class ValidationError(ApiError):
    code = ErrorCode.VALIDATION


class DuplicateNumberError(ApiError):
    code = ErrorCode.DUPLICATE_NUMBER

    def __init__(self, number: int, message: Optional[str] = None, **kwargs: Any) -> None:
        super().__init__(message or f"Sie haben bereits einen Nachweis mit der Nummer {number}.", **kwargs)
        self.number = number


class ForbiddenError(ApiError):
    code = ErrorCode.FORBIDDEN


class NotFoundError(ApiError):
    code = ErrorCode.NOT_FOUND


class ConflictError(ApiError):
    code = ErrorCode.CONFLICT


class TransportError(ApiError):
    code = ErrorCode.TRANSPORT


_ERRORS_BY_CODE: Dict[str, Type[ApiError]] = {
    ErrorCode.VALIDATION.value: ValidationError,
    ErrorCode.FORBIDDEN.value: ForbiddenError,
    ErrorCode.NOT_FOUND.value: NotFoundError,
    ErrorCode.CONFLICT.value: ConflictError,
}

_ERRORS_BY_STATUS: Dict[int, Type[ApiError]] = {
    400: ValidationError,
    422: ValidationError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
}


def _error_message(payload: Any, fallback: str) -> str:
    if isinstance(payload, dict):
        detail = payload.get("detail")
        if isinstance(detail, str):
            return detail
        if isinstance(detail, list):
            return "; ".join(str(item.get("msg", item)) if isinstance(item, dict) else str(item) for item in detail)
    return fallback


def error_from_response(response: httpx.Response) -> ApiError:
    try:
        payload = response.json()
    except ValueError:
        payload = None
    message = _error_message(payload, f"API Fehler {response.status_code}: {response.text}")
    code = payload.get("code") if isinstance(payload, dict) else None

    if code == ErrorCode.DUPLICATE_NUMBER.value:
        return DuplicateNumberError(
            int(payload.get("number", 0)),
            message,
            status_code=response.status_code,
            response=response,
        )
    error_cls = _ERRORS_BY_CODE.get(code or "") or _ERRORS_BY_STATUS.get(response.status_code, TransportError)
    return error_cls(message, status_code=response.status_code, response=response)


class ApiClient:
    """Kapselt HTTP-Aufrufe zur Nachweis API."""

    def __init__(
        self,
        base_url: str,
        user_id: Optional[int] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.user_id = user_id
        self._client = httpx.AsyncClient(base_url=self.base_url, timeout=timeout, transport=transport)

    @classmethod
    def from_config(cls, config: AppConfig, **kwargs: Any) -> "ApiClient":
        return cls(config.api_base_url, user_id=config.user_id, timeout=config.timeout, **kwargs)

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Hilfsfunktionen
    # ------------------------------------------------------------------
    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.user_id is not None:
            headers["X-User-Id"] = str(self.user_id)
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        clean_params = {key: value for key, value in (params or {}).items() if value is not None}
        try:
            response = await self._client.request(
                method,
                path,
                params=clean_params or None,
                json=json,
                headers=self._headers(),
            )
        except httpx.HTTPError as exc:
            logger.warning("%s %s fehlgeschlagen: %s", method, path, exc)
            raise TransportError(str(exc)) from exc

        logger.debug("%s %s -> %s", method, path, response.status_code)
        if response.status_code >= 400:
            raise error_from_response(response)
        if response.status_code == 204 or not response.content:
            return None
        if response.headers.get("Content-Type", "").startswith("application/json"):
            return response.json()
        return response.content

    # ------------------------------------------------------------------
    # Nachweise
    # ------------------------------------------------------------------
    async def list_records(self, params: Mapping[str, Any]) -> dict:
        return await self.request("GET", "/records", params=params) or {}

    async def get_record(self, record_id: int) -> dict:
        return await self.request("GET", f"/records/{record_id}")

    async def create_record(self, payload: Mapping[str, Any]) -> dict:
        return await self.request("POST", "/records", json=dict(payload))

    async def update_record(self, record_id: int, payload: Mapping[str, Any]) -> dict:
        return await self.request("PUT", f"/records/{record_id}", json=dict(payload))

    async def set_status(self, record_id: int, status: str, comment: Optional[str] = None) -> dict:
        return await self.request("PUT", f"/records/{record_id}/status", json={"status": status, "comment": comment})

    async def delete_record(self, record_id: int) -> None:
        await self.request("DELETE", f"/records/{record_id}")

    async def record_exists(self, number: int) -> bool:
        data = await self.request("GET", f"/records/exists/by-number/{number}") or {}
        return bool(data.get("exists"))

    async def next_number(self) -> int:
        data = await self.request("GET", "/records/next-number") or {}
        return int(data.get("nextNumber", 1))

    async def fetch_document(self, record_id: int) -> bytes:
        return await self.request("GET", f"/records/{record_id}/document")

    # ------------------------------------------------------------------
    # Sammelaktionen
    # ------------------------------------------------------------------
    async def batch_status(self, ids: Iterable[int], status: str, comment: Optional[str] = None) -> dict:
        payload = {"ids": list(ids), "status": status, "comment": comment}
        return await self.request("PUT", "/records/batch-status", json=payload) or {}

    async def batch_delete(self, ids: Iterable[int]) -> dict:
        return await self.request("DELETE", "/records/batch-delete", json={"ids": list(ids)}) or {}

    async def batch_export(self, ids: Iterable[int]) -> bytes:
        return await self.request("POST", "/records/batch-export", json={"ids": list(ids)})

    async def batch_print(self, ids: Iterable[int]) -> bytes:
        return await self.request("POST", "/records/batch-print", json={"ids": list(ids)})

    # ------------------------------------------------------------------
    # Audit
    # ------------------------------------------------------------------
    async def record_audits(self, page: int = 0, size: int = 50) -> Any:
        return await self.request("GET", "/audit/records", params={"page": page, "size": size})

    async def role_audits(self, page: int = 0, size: int = 50) -> Any:
        return await self.request("GET", "/audit/roles", params={"page": page, "size": size})

    async def record_audit(self, record_id: int) -> Any:
        return await self.request("GET", f"/audit/records/{record_id}")


__all__ = [
    "ApiClient",
    "ApiError",
    "ConflictError",
    "DuplicateNumberError",
    "ErrorCode",
    "ForbiddenError",
    "NotFoundError",
    "TransportError",
    "ValidationError",
    "error_from_response",
]
