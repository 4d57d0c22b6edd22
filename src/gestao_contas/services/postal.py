"""Brazilian postal code (CEP) lookup."""

from dataclasses import dataclass
from typing import Any

import httpx
import structlog

from gestao_contas.config import get_settings
from gestao_contas.errors import PostalCodeError
from gestao_contas.formatting import only_digits

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Address:
    postal_code: str
    street: str | None = None
    complement: str | None = None
    neighborhood: str | None = None
    city: str | None = None
    state: str | None = None


class PostalCodeClient:
    """Client for a ViaCEP-style ``/{cep}/json/`` endpoint."""

    def __init__(self, base_url: str | None = None, http_client: httpx.AsyncClient | None = None):
        settings = get_settings()
        self.base_url = (base_url or settings.postal_code_api_url).rstrip("/")
        self._client = http_client
        self._owns_client = http_client is None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(10.0))
        return self._client

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "PostalCodeClient":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def lookup(self, postal_code: str) -> Address:
        """Resolve a CEP into an address.

        Raises:
            PostalCodeError: The CEP is malformed, unknown, or the service failed.
        """
        digits = only_digits(postal_code)
        if len(digits) != 8:
            raise PostalCodeError(f"CEP inválido: {postal_code}")

        client = await self._get_client()
        try:
            response = await client.get(f"{self.base_url}/{digits}/json/")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("postal_code_lookup_failed", postal_code=digits, error=str(e))
            raise PostalCodeError(f"Falha ao consultar o CEP {digits}") from e

        if not isinstance(data, dict) or data.get("erro"):
            raise PostalCodeError(f"CEP não encontrado: {digits}")

        return Address(
            postal_code=digits,
            street=data.get("logradouro") or None,
            complement=data.get("complemento") or None,
            neighborhood=data.get("bairro") or None,
            city=data.get("localidade") or None,
            state=data.get("uf") or None,
        )
