import typing as t
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field

Record = dict[str, t.Any]


class ActionType(StrEnum):
    get = "get"
    read = "read"
    create = "create"
    modify = "modify"
    delete = "delete"


class Credentials(BaseModel):
    model_config = ConfigDict(frozen=True)

    api_token: str
    api_secret: str = Field(repr=False)


class SignedAction(BaseModel):
    """One action as it is sent inside ``request.actions``."""

    model_config = ConfigDict(frozen=True)

    actionid: str
    identifier: str
    resourcetype: str
    resourceid: str
    parameters: dict[str, t.Any]
    timestamp: str
    hmac: str


class ActionCall(BaseModel):
    """An unsigned logical call, ready to be handed to a requester."""

    model_config = ConfigDict(frozen=True)

    action_type: ActionType
    resource_type: str
    parameters: dict[str, t.Any] = Field(default_factory=dict)
    resource_id: str = ""


class ActionStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    errorcode: int
    message: str = ""


class ActionData(BaseModel):
    model_config = ConfigDict(extra="allow")

    records: list[Record] = Field(default_factory=list)


class ActionResponse(BaseModel):
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    identifier: str = ""
    status: ActionStatus
    data: ActionData = Field(default_factory=ActionData)


class EnvelopeStatus(BaseModel):
    model_config = ConfigDict(extra="allow")

    code: int
    message: str = ""
    errorcode: int | None = None


class ResponseBody(BaseModel):
    model_config = ConfigDict(extra="allow")

    results: list[ActionResponse] = Field(default_factory=list)


class ResponseEnvelope(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: EnvelopeStatus
    response: ResponseBody = Field(default_factory=ResponseBody)


BatchResult = dict[str, ActionResponse]
