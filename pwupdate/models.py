from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from .rules import DEFAULT_USER_TYPE


class IdentityRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    given_name: str = Field(alias="givenName")
    surname: str
    given_name_normalized: str = Field(default="", alias="givenNameNormalized")
    surname_normalized: str = Field(default="", alias="surnameNormalized")
    department: str = ""
    user_type: str = Field(default=DEFAULT_USER_TYPE, alias="userType")
    new_password: str = Field(default="", alias="newPassword")
    force_change: bool = Field(default=False, alias="forceChange")


class Channel(str, Enum):
    STDOUT = "stdout"
    STDERR = "stderr"


class LogEvent(BaseModel):
    kind: Literal["info", "error"]
    message: str
    channel: Optional[Channel] = None


class RunOutcome(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    succeeded: bool
    exit_code: Optional[int] = Field(default=None, alias="exitCode")
    failed_identities: List[str] = Field(default_factory=list, alias="failedIdentities")
    error: Optional[str] = None


class OpenCsvRequest(BaseModel):
    path: Optional[str] = None


class TaggedResult(BaseModel):
    """Single result envelope returned by every roster/run operation."""

    model_config = ConfigDict(populate_by_name=True)

    status: Literal["ok", "cancelled", "error", "failed"]
    count: Optional[int] = Field(default=None, examples=[None])
    data: Optional[List[IdentityRecord]] = None
    message: Optional[str] = None
    failed_users: Optional[List[str]] = Field(default=None, alias="failedUsers")
    exit_code: Optional[int] = Field(default=None, alias="exitCode")
    log: Optional[List[LogEvent]] = None


class HealthResponse(BaseModel):
    ok: bool = True
