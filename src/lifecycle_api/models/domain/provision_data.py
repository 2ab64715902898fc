"""Merged grant data per provider family.

Rules store their payloads as free-form JSON. After merging, each connector
validates the result into one of these models before touching the network.
"""

from typing import Literal

from pydantic import BaseModel, Field

Permission = Literal["read", "write", "admin"]

# Repository permission rank used when the same repository is granted twice
PERMISSION_RANK: dict[str, int] = {"read": 1, "write": 2, "admin": 3}


class DirectoryGrants(BaseModel):
    """Org unit and group memberships in the directory."""

    org_unit_path: str | None = None
    groups: list[str] = Field(default_factory=list)


class ChatGrants(BaseModel):
    """Channels (names or ids) and user groups in the chat workspace."""

    channels: list[str] = Field(default_factory=list)
    user_groups: list[str] = Field(default_factory=list)


class RepositoryGrant(BaseModel):
    """Permission on one repository."""

    slug: str
    permission: Permission = "read"


class SourceControlGrants(BaseModel):
    """Workspace groups, then per-repository permissions."""

    groups: list[str] = Field(default_factory=list)
    repositories: list[RepositoryGrant] = Field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        """Whether there is nothing to grant."""
        return not self.groups and not self.repositories


class ProjectRoleGrant(BaseModel):
    """Role assignment in one issue tracker project."""

    project_id: str
    role_id: str
    project_key: str | None = None
    role_name: str | None = None

    @property
    def key(self) -> str:
        """Identity of the assignment."""
        return f"{self.project_id}:{self.role_id}"


class IssueTrackerGrants(BaseModel):
    """Groups, then project role assignments."""

    groups: list[str] = Field(default_factory=list)
    project_roles: list[ProjectRoleGrant] = Field(default_factory=list)


class PasswordManagerGrants(BaseModel):
    """Role in the password manager."""

    role: Literal["user", "admin"] | None = None
