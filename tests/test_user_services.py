"""Tests for permission loading, user administration and uploads."""

from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest
import structlog

from conftest import USER_ID

from gestao_contas.backend import BackendClient, BackendError, eq
from gestao_contas.errors import UploadError, ValidationError
from gestao_contas.models import ManagementContext, UploadFile
from gestao_contas.permissions import Capability, PermissionSet, Tab
from gestao_contas.services.storage import StorageUploader
from gestao_contas.services.users import PermissionService, UserAdminService

OTHER_USER = UUID("22222222-2222-2222-2222-222222222222")


@pytest.fixture
def backend():
    client = MagicMock(spec=BackendClient)
    client.select = AsyncMock(return_value=[])
    client.invoke = AsyncMock(return_value={})
    return client


def permission_row(tab: str, **capabilities) -> dict:
    row = {"user_id": str(OTHER_USER), "management_type": "casa", "tab": tab}
    row.update({f"can_{name}": enabled for name, enabled in capabilities.items()})
    return row


class TestPermissionService:
    """Tests for loading a user's permissions."""

    @pytest.mark.asyncio
    async def test_session_for(self, backend):
        backend.select = AsyncMock(
            return_value=[
                permission_row("contas", read=True, write=True),
                permission_row("pagas", read=False),
            ]
        )

        session = await PermissionService(backend).session_for(
            OTHER_USER, ManagementContext.HOUSEHOLD, email="bia@example.com"
        )

        assert backend.select.call_args.args == ("user_permissions", [eq("user_id", OTHER_USER)])
        assert session.can(Tab.ACCOUNTS, Capability.WRITE)
        assert not session.can(Tab.ACCOUNTS, Capability.DELETE)
        assert not session.can(Tab.PAID, Capability.READ)
        assert len(session.permissions) == 1
        assert session.email == "bia@example.com"
        assert structlog.contextvars.get_contextvars()["management"] == "casa"

    @pytest.mark.asyncio
    async def test_other_context_has_no_access(self, backend):
        backend.select = AsyncMock(return_value=[permission_row("contas", read=True)])

        session = await PermissionService(backend).session_for(OTHER_USER, ManagementContext.PERSONAL)

        assert not session.can(Tab.ACCOUNTS, Capability.READ)


class TestUserAdminService:
    """Tests for the admin function calls."""

    @pytest.mark.asyncio
    async def test_list_users(self, backend, session):
        backend.invoke = AsyncMock(
            return_value={
                "users": [
                    {"id": str(OTHER_USER), "email": "bia@example.com", "first_name": "Bia",
                     "last_name": "Lima", "status": "active"},
                ]
            }
        )

        users = await UserAdminService(backend, session).list_users()

        assert users[0].id == OTHER_USER
        assert users[0].full_name == "Bia Lima"
        assert users[0].status == "active"
        backend.invoke.assert_awaited_once_with("list-users", {})

    @pytest.mark.asyncio
    async def test_get_user_details(self, backend, session):
        backend.invoke = AsyncMock(
            return_value={
                "profile": {"first_name": "Bia", "status": "inactive"},
                "permissions": [permission_row("pix", read=True)],
            }
        )

        details = await UserAdminService(backend, session).get_user_details(OTHER_USER)

        assert backend.invoke.call_args.args == ("get-user-details", {"userId": str(OTHER_USER)})
        assert details.first_name == "Bia"
        assert details.status == "inactive"
        assert details.permissions.has(ManagementContext.HOUSEHOLD, Tab.PIX, Capability.READ)

    @pytest.mark.asyncio
    async def test_create_user_payload(self, backend, session):
        """Test that permission rows are sent without a user id."""
        backend.invoke = AsyncMock(
            return_value={"user": {"id": str(OTHER_USER), "email": "bia@example.com"}}
        )
        permissions = PermissionSet().set_tab(ManagementContext.HOUSEHOLD, Tab.ACCOUNTS, True)

        user = await UserAdminService(backend, session).create_user(
            "bia@example.com", "secret1", first_name="Bia", permissions=permissions
        )

        function, payload = backend.invoke.call_args.args
        assert function == "create-user"
        assert payload["email"] == "bia@example.com"
        assert payload["first_name"] == "Bia"
        assert payload["permissions"] == [
            {
                "management_type": "casa",
                "tab": "contas",
                "can_read": True,
                "can_write": True,
                "can_edit": True,
                "can_delete": True,
            }
        ]
        assert user.id == OTHER_USER
        assert user.status == "active"

    @pytest.mark.asyncio
    async def test_create_user_validation(self, backend, session):
        with pytest.raises(ValidationError) as exc_info:
            await UserAdminService(backend, session).create_user("bia", "123")

        assert set(exc_info.value.errors) == {"email", "password"}
        backend.invoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_user_payload(self, backend, session):
        await UserAdminService(backend, session).update_user(
            OTHER_USER,
            first_name="Bia",
            last_name="Lima",
            status="inactive",
            permissions=PermissionSet(),
        )

        function, payload = backend.invoke.call_args.args
        assert function == "update-user"
        assert payload == {
            "userId": str(OTHER_USER),
            "email": None,
            "password": None,
            "firstName": "Bia",
            "lastName": "Lima",
            "status": "inactive",
            "permissions": [],
        }

    @pytest.mark.asyncio
    async def test_cannot_delete_self(self, backend, session):
        with pytest.raises(ValidationError):
            await UserAdminService(backend, session).delete_user(USER_ID)

        backend.invoke.assert_not_called()

    @pytest.mark.asyncio
    async def test_delete_user(self, backend, session):
        await UserAdminService(backend, session).delete_user(OTHER_USER)

        backend.invoke.assert_awaited_once_with("delete-user", {"id": str(OTHER_USER)})

    @pytest.mark.asyncio
    async def test_function_error(self, backend, session):
        backend.invoke = AsyncMock(return_value={"error": "Acesso negado"})

        with pytest.raises(BackendError) as exc_info:
            await UserAdminService(backend, session).delete_user(OTHER_USER)

        assert str(exc_info.value) == "Acesso negado"


class TestStorageUploader:
    """Tests for object storage uploads."""

    @pytest.mark.asyncio
    async def test_upload_returns_public_url(self, backend, session):
        backend.upload = AsyncMock(side_effect=lambda bucket, path, content, content_type: path)
        backend.public_url = MagicMock(side_effect=lambda bucket, path: f"http://files/{bucket}/{path}")
        file = UploadFile("conta.png", b"\x89PNG", "image/png")

        url = await StorageUploader(backend, session).upload("attachments", file)

        bucket, path, content, content_type = backend.upload.call_args.args
        assert path.startswith(f"{USER_ID}/pessoal/")
        assert path.endswith("-conta.png")
        assert content_type == "image/png"
        assert url == f"http://files/attachments/{path}"

    @pytest.mark.asyncio
    async def test_upload_failure(self, backend, session):
        backend.upload = AsyncMock(side_effect=BackendError("Payload too large", status_code=413))

        with pytest.raises(UploadError) as exc_info:
            await StorageUploader(backend, session).upload("attachments", UploadFile("a.pdf", b"x"))

        assert exc_info.value.filename == "a.pdf"
        assert "Payload too large" in str(exc_info.value)
