"""Microsoft Graph implementation of the DirectoryClient port."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from provisioning.config import DirectorySettings
from provisioning.domain.errors import DirectoryTimeoutError, ExternalServiceError
from provisioning.domain.models.directory import (
    DirectoryIdentity,
    DirectoryReference,
    IdentityProfile,
    ProfileChanges,
)
from provisioning.domain.models.payloads import (
    GroupMembershipAdded,
    GroupMembershipRemoved,
    IdentityCreated,
    IdentityDisabled,
    LicensesAssigned,
    LicensesRemoved,
    ProfileUpdated,
    SessionsRevoked,
    TeamMembershipAdded,
    TeamMembershipRemoved,
)
from provisioning.domain.ports.services import DirectoryClient
from provisioning.infrastructure.directory.retry import RetryableError, with_backoff
from provisioning.infrastructure.observability.metrics import (
    DIRECTORY_CALLS_TOTAL,
    DIRECTORY_RETRIES_TOTAL,
)


logger = structlog.get_logger(__name__)

IDENTITY_FIELDS = "id,userPrincipalName,displayName,mail,department,jobTitle,officeLocation,accountEnabled"


def _is_already_member(response: httpx.Response) -> bool:
    return response.status_code in (400, 409) and "already exist" in response.text.lower()


def _retry_after(response: httpx.Response) -> float | None:
    value = response.headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class GraphDirectoryClient(DirectoryClient):
    """Directory adapter for Microsoft Graph v1.0.

    Transport errors, 429 and 5xx responses are retried with exponential
    backoff. A 404 on a removal and "already exists" on an add are reported as
    success; a 404 on a lookup returns ``None``.
    """

    def __init__(
        self,
        settings: DirectorySettings,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._client = client or httpx.AsyncClient(
            base_url=settings.base_url,
            timeout=settings.request_timeout_seconds,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._settings.access_token:
            headers["Authorization"] = f"Bearer {self._settings.access_token}"
        return headers

    def _url(self, path: str) -> str:
        if path.startswith("https://") or path.startswith("http://"):
            return path
        return f"{self._settings.base_url.rstrip('/')}{path}"

    async def _request(
        self,
        operation: str,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, str] | None = None,
        tolerate: tuple[int, ...] = (),
        retries_seen: list[str] | None = None,
    ) -> httpx.Response:
        """Send a request, retrying transient failures.

        Responses with a status in ``tolerate`` are returned to the caller
        instead of raising, so it can apply its own idempotency rule. Each
        retried error is appended to ``retries_seen`` when given.
        """

        async def attempt() -> httpx.Response:
            try:
                response = await self._client.request(
                    method, self._url(path), json=json, params=params, headers=self._headers(),
                )
            except httpx.TimeoutException as e:
                raise RetryableError(f"timeout: {e}") from e
            except httpx.TransportError as e:
                raise RetryableError(f"transport error: {e}") from e
            if response.status_code == 429 or response.status_code >= 500:
                raise RetryableError(
                    f"{response.status_code} {response.text[:200]}",
                    retry_after=_retry_after(response),
                )
            return response

        def on_retry(attempt_no: int, error: BaseException) -> None:
            DIRECTORY_RETRIES_TOTAL.labels(operation=operation).inc()
            if retries_seen is not None:
                retries_seen.append(str(error))
            logger.warning("directory_call_retry", operation=operation, attempt=attempt_no, error=str(error))

        try:
            response = await with_backoff(
                attempt,
                retries=self._settings.max_retries,
                base_delay=self._settings.backoff_base_seconds,
                max_delay=self._settings.backoff_max_seconds,
                on_retry=on_retry,
            )
        except RetryableError as e:
            DIRECTORY_CALLS_TOTAL.labels(operation=operation, result="error").inc()
            if isinstance(e.__cause__, httpx.TimeoutException):
                raise DirectoryTimeoutError(operation, self._settings.request_timeout_seconds) from e
            raise ExternalServiceError(operation, str(e)) from e

        if response.is_success or response.status_code in tolerate:
            DIRECTORY_CALLS_TOTAL.labels(operation=operation, result="success").inc()
            return response

        DIRECTORY_CALLS_TOTAL.labels(operation=operation, result="error").inc()
        raise ExternalServiceError(operation, _error_message(response), status_code=response.status_code)

    async def _list(self, operation: str, path: str, params: dict[str, str]) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        response = await self._request(operation, "GET", path, params=params)
        body = response.json()
        items.extend(body.get("value", []))
        next_link = body.get("@odata.nextLink")
        while next_link:
            response = await self._request(operation, "GET", next_link)
            body = response.json()
            items.extend(body.get("value", []))
            next_link = body.get("@odata.nextLink")
        return items

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------

    async def create_identity(self, profile: IdentityProfile) -> IdentityCreated:
        body = {
            "accountEnabled": profile.account_enabled,
            "displayName": profile.display_name,
            "givenName": profile.given_name,
            "surname": profile.surname,
            "mailNickname": profile.mail_nickname,
            "userPrincipalName": profile.user_principal_name,
            "department": profile.department,
            "jobTitle": profile.job_title,
            "officeLocation": profile.office_location,
            "usageLocation": profile.usage_location,
            "employeeId": profile.employee_id,
            "passwordProfile": {
                "password": profile.password,
                "forceChangePasswordNextSignIn": profile.force_change_password,
            },
        }
        retries_seen: list[str] = []
        try:
            response = await self._request(
                "create_identity", "POST", "/users", json=body, retries_seen=retries_seen,
            )
        except ExternalServiceError as e:
            already_exists = e.status_code in (400, 409) and "already exist" in e.detail.lower()
            if not (retries_seen and already_exists):
                raise
            # An earlier attempt may have landed before its response was lost.
            return await self._adopt_identity(profile)
        data = response.json()
        logger.info("directory_identity_created", identity_id=data["id"])
        return IdentityCreated(
            identity_id=data["id"],
            principal_name=data.get("userPrincipalName", profile.user_principal_name),
            mail=data.get("mail") or "",
        )

    async def _adopt_identity(self, profile: IdentityProfile) -> IdentityCreated:
        response = await self._request(
            "create_identity", "GET", f"/users/{profile.user_principal_name}",
            params={"$select": "id,userPrincipalName,mail,employeeId"}, tolerate=(404,),
        )
        data = response.json() if response.is_success else {}
        if data.get("employeeId") != profile.employee_id:
            raise ExternalServiceError(
                "create_identity",
                f"{profile.user_principal_name} already exists and belongs to another employee",
                status_code=409,
            )
        logger.warning(
            "directory_identity_adopted_after_retry",
            identity_id=data["id"], principal_name=profile.user_principal_name,
        )
        return IdentityCreated(
            identity_id=data["id"],
            principal_name=data.get("userPrincipalName", profile.user_principal_name),
            mail=data.get("mail") or "",
        )

    async def get_identity(self, principal: str) -> DirectoryIdentity | None:
        response = await self._request(
            "get_identity", "GET", f"/users/{principal}",
            params={"$select": IDENTITY_FIELDS}, tolerate=(404,),
        )
        if response.status_code == 404:
            return None
        data = response.json()
        return DirectoryIdentity(
            id=data["id"],
            user_principal_name=data.get("userPrincipalName", principal),
            display_name=data.get("displayName") or "",
            mail=data.get("mail") or "",
            department=data.get("department") or "",
            job_title=data.get("jobTitle") or "",
            office_location=data.get("officeLocation") or "",
            account_enabled=data.get("accountEnabled", True),
        )

    async def update_identity(self, identity_id: str, changes: ProfileChanges) -> ProfileUpdated:
        field_names = {
            "display_name": "displayName",
            "department": "department",
            "job_title": "jobTitle",
            "office_location": "officeLocation",
        }
        updates = changes.as_dict()
        await self._request(
            "update_identity", "PATCH", f"/users/{identity_id}",
            json={field_names[k]: v for k, v in updates.items()},
        )
        return ProfileUpdated(identity_id=identity_id, changes=updates)

    async def set_manager(self, identity_id: str, manager_id: str) -> None:
        await self._request(
            "set_manager", "PUT", f"/users/{identity_id}/manager/$ref",
            json={"@odata.id": self._url(f"/users/{manager_id}")},
        )

    async def disable_identity(self, identity_id: str) -> IdentityDisabled:
        await self._request(
            "disable_identity", "PATCH", f"/users/{identity_id}", json={"accountEnabled": False},
        )
        return IdentityDisabled(identity_id=identity_id)

    async def enable_identity(self, identity_id: str) -> None:
        await self._request(
            "enable_identity", "PATCH", f"/users/{identity_id}", json={"accountEnabled": True},
        )

    async def revoke_sessions(self, identity_id: str) -> SessionsRevoked:
        await self._request("revoke_sessions", "POST", f"/users/{identity_id}/revokeSignInSessions")
        return SessionsRevoked(identity_id=identity_id)

    # ------------------------------------------------------------------
    # Licenses
    # ------------------------------------------------------------------

    async def assign_licenses(self, identity_id: str, license_ids: list[str]) -> LicensesAssigned:
        await self._request(
            "assign_licenses", "POST", f"/users/{identity_id}/assignLicense",
            json={
                "addLicenses": [{"skuId": sku, "disabledPlans": []} for sku in license_ids],
                "removeLicenses": [],
            },
        )
        return LicensesAssigned(identity_id=identity_id, license_ids=list(license_ids))

    async def remove_licenses(self, identity_id: str, license_ids: list[str]) -> LicensesRemoved:
        await self._request(
            "remove_licenses", "POST", f"/users/{identity_id}/assignLicense",
            json={"addLicenses": [], "removeLicenses": list(license_ids)},
        )
        return LicensesRemoved(identity_id=identity_id, license_ids=list(license_ids))

    async def list_licenses(self, identity_id: str) -> list[DirectoryReference]:
        items = await self._list(
            "list_licenses", f"/users/{identity_id}/licenseDetails",
            params={"$select": "skuId,skuPartNumber"},
        )
        return [DirectoryReference(id=i["skuId"], name=i.get("skuPartNumber") or "") for i in items]

    # ------------------------------------------------------------------
    # Groups
    # ------------------------------------------------------------------

    async def add_to_group(self, identity_id: str, group_id: str) -> GroupMembershipAdded:
        response = await self._request(
            "add_to_group", "POST", f"/groups/{group_id}/members/$ref",
            json={"@odata.id": self._url(f"/directoryObjects/{identity_id}")},
            tolerate=(400, 409),
        )
        if not response.is_success and not _is_already_member(response):
            raise ExternalServiceError(
                "add_to_group", _error_message(response), status_code=response.status_code,
            )
        return GroupMembershipAdded(identity_id=identity_id, group_id=group_id)

    async def remove_from_group(self, identity_id: str, group_id: str) -> GroupMembershipRemoved:
        await self._request(
            "remove_from_group", "DELETE", f"/groups/{group_id}/members/{identity_id}/$ref",
            tolerate=(404,),
        )
        return GroupMembershipRemoved(identity_id=identity_id, group_id=group_id)

    async def list_groups(self, identity_id: str) -> list[DirectoryReference]:
        items = await self._list(
            "list_groups", f"/users/{identity_id}/memberOf/microsoft.graph.group",
            params={"$select": "id,displayName"},
        )
        return [DirectoryReference(id=i["id"], name=i.get("displayName") or "") for i in items]

    # ------------------------------------------------------------------
    # Teams
    # ------------------------------------------------------------------

    async def add_to_team(
        self, identity_id: str, team_id: str, role: str = "member"
    ) -> TeamMembershipAdded:
        response = await self._request(
            "add_to_team", "POST", f"/teams/{team_id}/members",
            json={
                "@odata.type": "#microsoft.graph.aadUserConversationMember",
                "roles": ["owner"] if role == "owner" else [],
                "user@odata.bind": self._url(f"/users('{identity_id}')"),
            },
            tolerate=(400, 409),
        )
        if not response.is_success and not _is_already_member(response):
            raise ExternalServiceError(
                "add_to_team", _error_message(response), status_code=response.status_code,
            )
        return TeamMembershipAdded(identity_id=identity_id, team_id=team_id, role=role)

    async def remove_from_team(self, identity_id: str, team_id: str) -> TeamMembershipRemoved:
        members = await self._list("list_team_members", f"/teams/{team_id}/members", params={})
        membership_id = next(
            (m["id"] for m in members if m.get("userId") == identity_id), None,
        )
        if membership_id is not None:
            await self._request(
                "remove_from_team", "DELETE", f"/teams/{team_id}/members/{membership_id}",
                tolerate=(404,),
            )
        return TeamMembershipRemoved(identity_id=identity_id, team_id=team_id)

    async def list_teams(self, identity_id: str) -> list[DirectoryReference]:
        items = await self._list(
            "list_teams", f"/users/{identity_id}/joinedTeams",
            params={"$select": "id,displayName"},
        )
        return [DirectoryReference(id=i["id"], name=i.get("displayName") or "") for i in items]


def _error_message(response: httpx.Response) -> str:
    try:
        error = response.json().get("error", {})
        return error.get("message") or response.text
    except ValueError:
        return response.text
