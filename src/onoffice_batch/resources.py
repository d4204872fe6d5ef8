"""
Parameter builders for the resource operations of the OnOffice API.

Builders are pure: they return an :class:`ActionCall` that can be run through
any :class:`~onoffice_batch.actions.Requester`, batched or direct.
"""

from __future__ import annotations

import re
import typing as t

import structlog
from pydantic import BaseModel, Field

from onoffice_batch.actions import Requester
from onoffice_batch.exceptions import UnsupportedOperatorError
from onoffice_batch.models import ActionCall, ActionType, Record

log = structlog.get_logger(__name__)

RELATION_TYPE_PREFIX = "urn:onoffice-de-ns:smart:2.5:relationTypes:"
RELATION_RESOURCE_ID = "relation"
RELATION_WRITE_ACTIONS = (ActionType.create, ActionType.modify, ActionType.delete)
MULTISELECT_RESOURCES = ("address", "estate")

FILTER_OPERATORS: dict[str, str] = {
    "is": "is",
    "or": "or",
    "equal": "=",
    "greater": ">",
    "less": "<",
    "greaterequal": ">=",
    "lessequal": "<=",
    "notequal": "<>",
    "between": "between",
    "like": "like",
    "notlike": "not like",
    "in": "in",
    "notin": "not in",
}

_MULTISELECT_VALUE = re.compile(r"\|?(\|[^|]+\|)+\|?")


class FilterOperation(BaseModel):
    operator: str
    value: t.Any = None


class FieldFilter(BaseModel):
    field: str
    operations: list[FilterOperation]


class ReadOptions(BaseModel):
    """Options shared by the ``read`` operations of address and estate."""

    data: list[str]
    special_data: list[str] = Field(default_factory=list)
    record_ids: list[int | str] | None = None
    filter_id: int | None = None
    filters: list[FieldFilter] | None = None
    limit: int | None = None
    offset: int | None = None
    sort_by: t.Any = None
    order: str | None = None
    format_output: bool | None = None
    language: str | None = None
    country_iso_code_type: str | None = None
    estate_language: str | None = None
    add_estate_language: bool | None = None
    add_main_lang_id: bool | None = None
    geo_range_search: dict[str, t.Any] | None = None

    def to_parameters(self) -> dict[str, t.Any]:
        return _drop_none(
            {
                "data": [*self.data, *self.special_data],
                "recordids": self.record_ids,
                "filterid": self.filter_id,
                "filter": create_filter_parameter(filters=self.filters),
                "listlimit": self.limit,
                "listoffset": self.offset,
                "sortby": self.sort_by,
                "sortorder": self.order,
                "formatoutput": self.format_output,
                "outputlanguage": self.language,
                "countryIsoCodeType": self.country_iso_code_type or None,
                "estatelanguage": self.estate_language,
                "addestatelanguage": self.add_estate_language,
                "addMainLangId": self.add_main_lang_id,
                "georangesearch": self.geo_range_search,
            }
        )


class AddressContact(BaseModel):
    """Contact fields accepted when creating an address."""

    phone: str | None = None
    phone_private: str | None = None
    phone_business: str | None = None
    mobile: str | None = None
    default_phone: str | None = None
    fax: str | None = None
    fax_private: str | None = None
    fax_business: str | None = None
    default_fax: str | None = None
    email: str | None = None
    email_business: str | None = None
    email_private: str | None = None
    default_email: str | None = None
    status: bool | int | None = Field(default=None, serialization_alias="Status")
    custom_properties: dict[str, t.Any] = Field(default_factory=dict, exclude=True)
    check_duplicate: bool | None = Field(
        default=None, serialization_alias="checkDuplicate", exclude=True
    )
    no_override_by_duplicate: bool | None = Field(
        default=None, serialization_alias="noOverrideByDuplicate", exclude=True
    )


def _drop_none(parameters: dict[str, t.Any]) -> dict[str, t.Any]:
    return {key: value for key, value in parameters.items() if value is not None}


def create_filter_parameter(
    filters: t.Sequence[FieldFilter] | None,
) -> dict[str, list[dict[str, t.Any]]] | None:
    """
    Translate read filters into the API's ``filter`` parameter.

    Parameters
    ----------
    filters : typing.Sequence[FieldFilter] | None
        Filters keyed by field name.

    Returns
    -------
    dict[str, list[dict[str, typing.Any]]] | None
        ``{field: [{"op": symbol, "val": value}, ...]}``, or ``None`` without filters.

    Raises
    ------
    UnsupportedOperatorError
        If an operator has no API symbol.
    """
    if filters is None:
        return None
    parameter: dict[str, list[dict[str, t.Any]]] = {}
    for field_filter in filters:
        operations = []
        for operation in field_filter.operations:
            symbol = FILTER_OPERATORS.get(operation.operator)
            if symbol is None:
                raise UnsupportedOperatorError(operator=operation.operator)
            operations.append({"op": symbol, "val": operation.value})
        parameter[field_filter.field] = operations
    return parameter


def convert_multiselect_fields_to_array(record: Record) -> Record:
    """
    Split multiselect element values such as ``"|a||b|"`` into lists.

    Parameters
    ----------
    record : Record
        A record with an ``elements`` mapping.

    Returns
    -------
    Record
        Copy of the record with multiselect values converted.
    """
    elements = {
        key: (
            [part for part in value.split("|") if part]
            if isinstance(value, str) and _MULTISELECT_VALUE.fullmatch(value)
            else value
        )
        for key, value in record.get("elements", {}).items()
    }
    return {**record, "elements": elements}


def build_relation_type(parent_type: str, child_type: str, relation: str | None = None) -> str:
    relation_type = f"{RELATION_TYPE_PREFIX}{parent_type}:{child_type}"
    return f"{relation_type}:{relation}" if relation else relation_type


def read_records(resource_type: str, options: ReadOptions) -> ActionCall:
    return ActionCall(
        action_type=ActionType.read,
        resource_type=resource_type,
        parameters=options.to_parameters(),
    )


def update_record(
    resource_type: str, resource_id: str, properties: t.Mapping[str, t.Any]
) -> ActionCall:
    return ActionCall(
        action_type=ActionType.modify,
        resource_type=resource_type,
        parameters=dict(properties),
        resource_id=resource_id,
    )


def create_address(contact: AddressContact) -> ActionCall:
    """
    Build an address ``create`` call.

    Custom properties override contact fields of the same name; the duplicate
    check flags are applied last.
    """
    parameters = {
        **contact.model_dump(by_alias=True, exclude_none=True),
        **contact.custom_properties,
    }
    parameters.update(
        _drop_none(
            {
                "checkDuplicate": contact.check_duplicate,
                "noOverrideByDuplicate": contact.no_override_by_duplicate,
            }
        )
    )
    return ActionCall(
        action_type=ActionType.create,
        resource_type="address",
        parameters=parameters,
    )


def read_address(options: ReadOptions) -> ActionCall:
    return read_records(resource_type="address", options=options)


def update_address(resource_id: str, properties: t.Mapping[str, t.Any]) -> ActionCall:
    return update_record(resource_type="address", resource_id=resource_id, properties=properties)


def read_estate(options: ReadOptions) -> ActionCall:
    return read_records(resource_type="estate", options=options)


def update_estate(resource_id: str, properties: t.Mapping[str, t.Any]) -> ActionCall:
    return update_record(resource_type="estate", resource_id=resource_id, properties=properties)


def read_fields(
    modules: list[str] | None = None,
    *,
    labels: bool | None = None,
    language: str | None = None,
    field_list: list[str] | None = None,
    show_only_inactive: bool | None = None,
    real_data_types: bool | None = None,
    show_field_measure_format: bool | None = None,
) -> ActionCall:
    return ActionCall(
        action_type=ActionType.get,
        resource_type="fields",
        parameters=_drop_none(
            {
                "modules": modules,
                "labels": labels,
                "language": language,
                "fieldList": field_list,
                "showOnlyInactive": show_only_inactive,
                "realDataTypes": real_data_types,
                "showFieldMeasureFormat": show_field_measure_format,
            }
        ),
    )


def read_search_criteria(ids: list[int | str] | None = None, mode: str | None = None) -> ActionCall:
    return ActionCall(
        action_type=ActionType.get,
        resource_type="searchcriterias",
        parameters=_drop_none({"ids": ids, "mode": mode}),
    )


def list_search_criteria_fields() -> ActionCall:
    return ActionCall(action_type=ActionType.get, resource_type="searchCriteriaFields")


def read_action_kind_types(language: str = "ENG") -> ActionCall:
    return ActionCall(
        action_type=ActionType.get,
        resource_type="actionkindtypes",
        parameters={"lang": language},
    )


def write_relation(
    action_type: ActionType | str,
    *,
    parent_type: str,
    child_type: str,
    parent_ids: list[int | str],
    child_ids: list[int | str],
    relation: str | None = None,
    relation_info: t.Mapping[str, t.Any] | None = None,
) -> ActionCall:
    """
    Build a relation ``create`` or ``modify`` call.

    Parameters
    ----------
    action_type : ActionType | str
        ``create`` or ``modify``.
    parent_type : str
        Parent module, e.g. ``estate``.
    child_type : str
        Child module, e.g. ``address``.
    parent_ids : list[int | str]
        Parent record ids.
    child_ids : list[int | str]
        Child record ids.
    relation : str | None, optional
        Relation name appended to the relation type.
    relation_info : typing.Mapping[str, typing.Any] | None, optional
        Extra relation attributes; omitted when empty.

    Returns
    -------
    ActionCall
        Call against the ``relation`` resource.
    """
    action_type = ActionType(action_type)
    if action_type not in (ActionType.create, ActionType.modify):
        raise ValueError(f"Relations can only be created or modified, not {action_type!r}")
    return ActionCall(
        action_type=action_type,
        resource_type="relation",
        parameters=_drop_none(
            {
                "relationtype": build_relation_type(parent_type, child_type, relation),
                "parentid": parent_ids,
                "childid": child_ids,
                "relationinfo": dict(relation_info) if relation_info else None,
            }
        ),
        resource_id=RELATION_RESOURCE_ID,
    )


def delete_relation(
    *,
    parent_type: str,
    child_type: str,
    parent_id: int | str,
    child_id: int | str,
    relation: str | None = None,
) -> ActionCall:
    return ActionCall(
        action_type=ActionType.delete,
        resource_type="relation",
        parameters={
            "relationtype": build_relation_type(parent_type, child_type, relation),
            "parentid": parent_id,
            "childid": child_id,
        },
        resource_id=RELATION_RESOURCE_ID,
    )


def read_relation(
    *,
    parent_type: str,
    child_type: str,
    parent_ids: list[int | str] | None = None,
    child_ids: list[int | str] | None = None,
    relation: str | None = None,
) -> ActionCall:
    """
    Build a lookup of ids linked through a relation.

    Exactly one side has to be given: ``parent_ids`` returns the linked
    children, ``child_ids`` the linked parents.

    Raises
    ------
    ValueError
        If both or neither of ``parent_ids`` and ``child_ids`` are set.
    """
    if (parent_ids is None) == (child_ids is None):
        raise ValueError("Set exactly one of parent_ids or child_ids")
    return ActionCall(
        action_type=ActionType.get,
        resource_type="idsfromrelation",
        parameters=_drop_none(
            {
                "relationtype": build_relation_type(parent_type, child_type, relation),
                "parentids": parent_ids,
                "childids": child_ids,
            }
        ),
    )


async def execute(requester: Requester, call: ActionCall) -> list[Record]:
    """
    Run one call and post-process its records.

    Reads of addresses and estates get their multiselect values split into
    lists. Relation writes that return no records yield ``[{"success": True}]``.

    Parameters
    ----------
    requester : Requester
        Batched or direct requester.
    call : ActionCall
        Call built by one of the builders in this module.

    Returns
    -------
    list[Record]
        Records of the action.
    """
    log.debug(
        event="Executing action call",
        action_type=call.action_type.value,
        resource_type=call.resource_type,
        resource_id=call.resource_id,
    )
    records = await requester.request(
        call.action_type,
        call.resource_type,
        call.parameters,
        call.resource_id,
    )
    if call.action_type is ActionType.read and call.resource_type in MULTISELECT_RESOURCES:
        return [convert_multiselect_fields_to_array(record=record) for record in records]
    if (
        call.resource_type == "relation"
        and call.action_type in RELATION_WRITE_ACTIONS
        and not records
    ):
        return [{"success": True}]
    return records


async def get_module_description(requester: Requester, module: str) -> list[Record]:
    """
    Fetch the field descriptions of one module.

    Parameters
    ----------
    requester : Requester
        Batched or direct requester.
    module : str
        Module name, e.g. ``address``.

    Returns
    -------
    list[Record]
        One entry per field, each with its ``name`` added.
    """
    records = await execute(requester, read_fields(modules=[module], labels=True))
    if not records:
        return []
    return [
        {**value, "name": key}
        for key, value in records[0].get("elements", {}).items()
        if not isinstance(value, str)
    ]
