"""Pytest configuration and fixtures."""

import os
from datetime import date
from decimal import Decimal
from io import BytesIO
from unittest.mock import AsyncMock
from uuid import UUID

import pytest

# Set test environment variables before importing settings
os.environ.setdefault("BACKEND_URL", "http://localhost:54321")
os.environ.setdefault("BACKEND_ANON_KEY", "anon-key-test")
os.environ.setdefault("BACKEND_EMAIL", "test@example.com")
os.environ.setdefault("BACKEND_PASSWORD", "testpassword")

from PIL import Image  # noqa: E402

from gestao_contas.context import SessionContext  # noqa: E402
from gestao_contas.models import Account, ManagementContext  # noqa: E402
from gestao_contas.permissions import PermissionSet  # noqa: E402

USER_ID = UUID("11111111-1111-1111-1111-111111111111")


def make_png(width: int = 40, height: int = 20, color: str = "red") -> bytes:
    """Encode a solid-color PNG."""
    buffer = BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def make_account(**changes) -> Account:
    """A pending unique account with overridable fields."""
    fields = {
        "name": "Conta de Luz",
        "total_value": Decimal("150.00"),
        "due_date": date(2024, 1, 15),
        "user_id": USER_ID,
        "management": ManagementContext.PERSONAL,
    }
    fields.update(changes)
    return Account(**fields)


@pytest.fixture
def user_id():
    return USER_ID


@pytest.fixture
def full_access():
    """Every capability on every tab of every context."""
    permissions = PermissionSet(user_id=USER_ID)
    for management in ManagementContext:
        permissions = permissions.set_all(management, True)
    return permissions


@pytest.fixture
def session(full_access):
    """Session of a user holding every permission in the personal context."""
    return SessionContext(
        user_id=USER_ID,
        management=ManagementContext.PERSONAL,
        permissions=full_access,
        email="test@example.com",
    )


@pytest.fixture
def mock_httpx_client():
    """Create a mock httpx AsyncClient."""
    client = AsyncMock()
    client.request = AsyncMock()
    client.post = AsyncMock()
    client.get = AsyncMock()
    client.aclose = AsyncMock()
    return client


@pytest.fixture
def mock_login_response():
    """Mock successful password sign-in response."""
    return {
        "access_token": "access-token-123",
        "refresh_token": "refresh-token-123",
        "token_type": "bearer",
        "expires_in": 3600,
        "user": {
            "id": "11111111-1111-1111-1111-111111111111",
            "email": "test@example.com",
        },
    }


@pytest.fixture
def account_row():
    """An installment row as returned by the accounts table."""
    return {
        "id": "44444444-4444-4444-4444-444444444444",
        "user_id": "11111111-1111-1111-1111-111111111111",
        "management_type": "pessoal",
        "name": "Geladeira",
        "account_type": "parcelada",
        "total_value": "100.00",
        "due_date": "2024-02-15",
        "status": "pendente",
        "installment_current": 2,
        "installments_total": 12,
        "installment_value": "100.00",
        "recurrence_end_date": None,
        "payment_date": None,
        "payment_method": None,
        "payment_bank_id": None,
        "pix_br_code": None,
        "fees_and_fines": None,
        "notes": "Loja X",
        "bill_proof_url": "http://files/bill.png",
        "payment_proof_url": None,
        "system_generated_bill_url": None,
        "full_report_url": "http://files/report.pdf",
        "other_attachments": [{"name": "Nota", "url": "http://files/nota.png"}],
        "group_id": "55555555-5555-5555-5555-555555555555",
        "created_at": "2024-01-10T12:00:00Z",
    }
