"""Hosted backend client: token auth, REST tables, object storage, functions."""

import asyncio
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Iterable, Sequence, cast
from urllib.parse import quote

import httpx
import structlog

from gestao_contas.config import get_settings
from gestao_contas.errors import GestaoContasError

logger = structlog.get_logger(__name__)

# Refresh this long before the reported expiry
TOKEN_EXPIRY_MARGIN = timedelta(minutes=5)

# Only reads are resent after a transport error; a write may already be committed
RETRYABLE_METHODS = frozenset({"GET", "HEAD"})


class BackendError(GestaoContasError):
    """Base exception for backend errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(BackendError):
    """Authentication failed."""

    pass


class RateLimitError(BackendError):
    """Rate limit exceeded."""

    pass


@dataclass(frozen=True)
class Filter:
    """A row filter in the backend's ``column=op.value`` query syntax."""

    column: str
    op: str
    value: Any

    def to_param(self) -> tuple[str, str]:
        if self.op == "in":
            values = ",".join(_param_value(v) for v in self.value)
            return self.column, f"in.({values})"
        return self.column, f"{self.op}.{_param_value(self.value)}"


def _param_value(value: Any) -> str:
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
        return value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def eq(column: str, value: Any) -> Filter:
    return Filter(column, "eq", value)


def gte(column: str, value: Any) -> Filter:
    return Filter(column, "gte", value)


def lte(column: str, value: Any) -> Filter:
    return Filter(column, "lte", value)


def in_(column: str, values: Iterable[Any]) -> Filter:
    return Filter(column, "in", list(values))


def _error_message(details: Any, status_code: int) -> str:
    if isinstance(details, dict):
        for key in ("message", "error_description", "msg", "error"):
            value = details.get(key)
            if isinstance(value, str) and value:
                return value
    return f"Backend error: {status_code}"


class BackendClient:
    """Async client for the hosted backend with token authentication."""

    def __init__(
        self,
        base_url: str | None = None,
        anon_key: str | None = None,
        email: str | None = None,
        password: str | None = None,
        access_token: str | None = None,
        refresh_token: str | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.backend_url).rstrip("/")
        self._anon_key = anon_key or settings.backend_anon_key.get_secret_value()
        self._email = email or settings.backend_email
        self._password = password or (
            settings.backend_password.get_secret_value() if settings.backend_password else None
        )
        self._timeout = settings.backend_timeout
        self._max_retries = settings.backend_max_retries

        # Allow pre-populated tokens (from an existing session)
        self._access_token: str | None = access_token
        self._refresh_token: str | None = refresh_token
        self._token_expires_at: datetime | None = None
        if access_token:
            self._token_expires_at = datetime.now(UTC) + timedelta(minutes=55)

        self._user: dict[str, Any] = {}

        self._client: httpx.AsyncClient | None = None
        self._lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self._timeout),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BackendClient":
        if not self._access_token:
            await self.login()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Authentication ===

    def _store_session(self, data: dict[str, Any]) -> None:
        self._access_token = data["access_token"]
        self._refresh_token = data.get("refresh_token", self._refresh_token)
        expires_in = int(data.get("expires_in") or 3600)
        self._token_expires_at = (
            datetime.now(UTC) + timedelta(seconds=expires_in) - TOKEN_EXPIRY_MARGIN
        )
        if isinstance(data.get("user"), dict):
            self._user = data["user"]

    async def login(self, email: str | None = None, password: str | None = None) -> dict[str, Any]:
        """Sign in with email and password."""
        email = email or self._email
        password = password or self._password
        if not email or not password:
            raise AuthenticationError("No credentials configured")
        self._email, self._password = email, password

        client = await self._get_client()
        response = await client.post(
            "/auth/v1/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers={"apikey": self._anon_key, "Content-Type": "application/json"},
        )

        if response.status_code in (400, 401):
            raise AuthenticationError("Invalid credentials", status_code=response.status_code)
        response.raise_for_status()

        data_raw = response.json()
        if not isinstance(data_raw, dict):
            raise BackendError("Invalid login response format")
        data = cast(dict[str, Any], data_raw)
        self._store_session(data)

        logger.info("logged_in", user=self._user.get("email", email))
        return data

    async def refresh_tokens(self) -> None:
        """Refresh the access token."""
        if not self._refresh_token:
            await self.login()
            return

        client = await self._get_client()
        response = await client.post(
            "/auth/v1/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": self._refresh_token},
            headers={"apikey": self._anon_key, "Content-Type": "application/json"},
        )

        if response.status_code in (400, 401):
            # Refresh token expired, need full re-login
            await self.login()
            return

        response.raise_for_status()
        data_raw = response.json()
        if not isinstance(data_raw, dict):
            raise BackendError("Invalid refresh response format")
        self._store_session(cast(dict[str, Any], data_raw))
        logger.debug("tokens_refreshed")

    async def logout(self) -> None:
        """End the session on the backend and forget the tokens."""
        if self._access_token:
            client = await self._get_client()
            response = await client.post("/auth/v1/logout", headers=self._get_headers())
            if response.status_code >= 400:
                logger.warning("logout_failed", status_code=response.status_code)
        self._access_token = None
        self._refresh_token = None
        self._token_expires_at = None
        self._user = {}

    async def _ensure_authenticated(self) -> None:
        """Ensure we have a valid access token."""
        async with self._lock:
            if not self._access_token:
                await self.login()
            elif self._token_expires_at and datetime.now(UTC) >= self._token_expires_at:
                await self.refresh_tokens()

    def _get_headers(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        """Get request headers with auth token."""
        headers = {"apikey": self._anon_key, "Content-Type": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        if extra:
            headers.update(extra)
        return headers

    @property
    def user(self) -> dict[str, Any]:
        """The signed-in user as returned by the auth service."""
        return self._user

    @property
    def user_id(self) -> str | None:
        return self._user.get("id")

    # === Generic Request Method ===

    async def _request(
        self,
        method: str,
        path: str,
        params: Sequence[tuple[str, str]] | None = None,
        json: Any = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        retry_count: int = 0,
    ) -> Any:
        """Make an authenticated request.

        Transport errors on GET and HEAD are retried with exponential backoff.
        Writes raise on the first transport failure.
        """
        await self._ensure_authenticated()
        client = await self._get_client()

        try:
            response = await client.request(
                method=method,
                url=path,
                params=list(params) if params else None,
                json=json,
                content=content,
                headers=self._get_headers(headers),
            )

            if response.status_code == 401 and retry_count < 1:
                # Token expired during request, refresh and retry
                await self.refresh_tokens()
                return await self._request(
                    method, path, params, json, content, headers, retry_count + 1
                )

            if response.status_code == 429:
                retry_after = int(response.headers.get("Retry-After", "60"))
                raise RateLimitError(
                    f"Rate limited, retry after {retry_after}s",
                    status_code=429,
                    details={"retry_after": retry_after},
                )

            if response.status_code >= 400:
                try:
                    error_detail = response.json() if response.content else {}
                except ValueError:
                    error_detail = {
                        "raw": response.text[:500] if response.text else "empty response"
                    }
                raise BackendError(
                    _error_message(error_detail, response.status_code),
                    status_code=response.status_code,
                    details=error_detail,
                )

            return response.json() if response.content else None

        except httpx.RequestError as e:
            if method.upper() in RETRYABLE_METHODS and retry_count < self._max_retries:
                await asyncio.sleep(2**retry_count)  # Exponential backoff
                return await self._request(
                    method, path, params, json, content, headers, retry_count + 1
                )
            raise BackendError(f"Request failed: {e}") from e

    @staticmethod
    def _rows(result: Any) -> list[dict[str, Any]]:
        """Return the list of rows from a table response."""
        if isinstance(result, list):
            return result
        if isinstance(result, dict):
            return [result]
        return []

    # === Tables ===

    async def select(
        self,
        table: str,
        filters: Iterable[Filter] = (),
        order: str | None = None,
        descending: bool = False,
        limit: int | None = None,
        columns: str = "*",
    ) -> list[dict[str, Any]]:
        """Select rows matching every filter."""
        params = [("select", columns)] + [f.to_param() for f in filters]
        if order:
            params.append(("order", f"{order}.{'desc' if descending else 'asc'}"))
        if limit is not None:
            params.append(("limit", str(limit)))
        result = await self._request("GET", f"/rest/v1/{table}", params=params)
        return self._rows(result)

    async def select_one(self, table: str, filters: Iterable[Filter]) -> dict[str, Any] | None:
        """First row matching the filters, or ``None``."""
        rows = await self.select(table, filters, limit=1)
        return rows[0] if rows else None

    async def insert(self, table: str, rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """Insert rows and return them as stored."""
        if not rows:
            return []
        result = await self._request(
            "POST",
            f"/rest/v1/{table}",
            json=rows,
            headers={"Prefer": "return=representation"},
        )
        return self._rows(result)

    async def upsert(
        self, table: str, rows: list[dict[str, Any]], on_conflict: str
    ) -> list[dict[str, Any]]:
        """Insert rows, updating the ones that collide on ``on_conflict``."""
        if not rows:
            return []
        result = await self._request(
            "POST",
            f"/rest/v1/{table}",
            params=[("on_conflict", on_conflict)],
            json=rows,
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        return self._rows(result)

    async def update(
        self, table: str, values: dict[str, Any], filters: Sequence[Filter]
    ) -> list[dict[str, Any]]:
        """Update the rows matching the filters."""
        if not filters:
            raise ValueError("Refusing to update without filters")
        result = await self._request(
            "PATCH",
            f"/rest/v1/{table}",
            params=[f.to_param() for f in filters],
            json=values,
            headers={"Prefer": "return=representation"},
        )
        return self._rows(result)

    async def delete(self, table: str, filters: Sequence[Filter]) -> list[dict[str, Any]]:
        """Delete the rows matching the filters."""
        if not filters:
            raise ValueError("Refusing to delete without filters")
        result = await self._request(
            "DELETE",
            f"/rest/v1/{table}",
            params=[f.to_param() for f in filters],
            headers={"Prefer": "return=representation"},
        )
        return self._rows(result)

    # === Storage ===

    async def upload(
        self, bucket: str, path: str, content: bytes, content_type: str
    ) -> str:
        """Upload bytes to a bucket; returns the object path."""
        await self._request(
            "POST",
            f"/storage/v1/object/{bucket}/{quote(path)}",
            content=content,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        logger.debug("object_uploaded", bucket=bucket, path=path, size=len(content))
        return path

    def public_url(self, bucket: str, path: str) -> str:
        """Public URL of an object in a public bucket."""
        return f"{self.base_url}/storage/v1/object/public/{bucket}/{quote(path)}"

    # === Functions ===

    async def invoke(self, function: str, payload: dict[str, Any] | None = None) -> Any:
        """Call a server function with a JSON body."""
        return await self._request("POST", f"/functions/v1/{function}", json=payload or {})
