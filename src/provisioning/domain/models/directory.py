"""Value objects exchanged with the remote identity directory."""

from __future__ import annotations

from pydantic import Field

from provisioning.domain.models.base import ValueObject


class IdentityProfile(ValueObject):
    """Attributes sent when creating a directory identity."""

    display_name: str
    given_name: str = ""
    surname: str = ""
    mail_nickname: str
    user_principal_name: str
    department: str = ""
    job_title: str = ""
    office_location: str = ""
    usage_location: str = "US"
    employee_id: str = ""
    password: str = Field(..., repr=False)
    force_change_password: bool = True
    account_enabled: bool = True


class ProfileChanges(ValueObject):
    """Partial profile update. ``None`` fields are left untouched."""

    display_name: str | None = None
    department: str | None = None
    job_title: str | None = None
    office_location: str | None = None

    def as_dict(self) -> dict[str, str]:
        return {k: v for k, v in self.model_dump().items() if v is not None}


class DirectoryIdentity(ValueObject):
    """An identity as currently stored in the directory."""

    id: str
    user_principal_name: str
    display_name: str = ""
    mail: str = ""
    department: str = ""
    job_title: str = ""
    office_location: str = ""
    account_enabled: bool = True


class DirectoryReference(ValueObject):
    """A group, team or license the identity holds."""

    id: str
    name: str = ""
