"""Record shapes for the dispatch API and the connector configuration.

Responses are validated in pydantic strict mode with extra fields forbidden,
so an unexpected or missing field rejects the whole response for that agency
instead of being coerced.
"""
import logging
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictStr, ValidationError

from dispatch_errors import SchemaValidationError, UnsupportedDataType

logger = logging.getLogger(__name__)

DataTypeName = Literal["incidents", "units"]
DATA_TYPES = ("incidents", "units")


class _Record(BaseModel):
    model_config = ConfigDict(strict=True, extra="forbid")


# Incidents

class IncidentTypeInfo(_Record):
    Incident_Type: Optional[str]
    Problem: Optional[str]
    Priority: Optional[float]
    PriorityDescription: Optional[str]
    Response_Plan: Optional[str]
    Determinant: Optional[str]


class IncidentHierarchyInfo(_Record):
    Agency_Type: str
    Jurisdiction: str
    Division: Optional[str]
    Battalion: Optional[str]
    Response_Area: Optional[str]


class CallerInfo(_Record):
    Caller_Name: Optional[str]
    Call_Back_Phone: Optional[str]
    MethodOfCallRcvd: Optional[str]


class LocationInfo(_Record):
    Address: Optional[str]
    Apartment: Optional[str]
    City: Optional[str]
    Location_Name: Optional[str]
    Cross_Street: Optional[str]
    Latitude: Optional[float]
    Longitude: Optional[float]


class IncidentTimesInfo(_Record):
    Time_PhonePickUp: Optional[str]
    Time_FirstCallTakingKeystroke: Optional[str]
    Time_CallEnteredQueue: Optional[str]
    Time_CallTakingComplete: Optional[str]
    Time_CallClosed: Optional[str]
    Fixed_Time_CallEnteredQueue: Optional[str]
    Fixed_Time_CallClosed: Optional[str]
    Time_FirstUnitAssigned: Optional[str]
    Time_FirstUnitEnroute: Optional[str]
    Time_FirstUnitStaged: Optional[str]
    Time_FirstUnitArrived: Optional[str]


class IncidentRecord(_Record):
    IncidentId: int
    ShortcutId: Optional[str]
    Master_Incident_Number: Optional[str]
    CaseNumbers: List[str]
    Response_Date: str
    IncidentType: IncidentTypeInfo
    IncidentHierarchy: IncidentHierarchyInfo
    CallerInformation: CallerInfo
    LocationInformation: LocationInfo
    IncidentTimes: IncidentTimesInfo
    CallTaking_Performed_By: Optional[str]
    CallClosing_Performed_By: Optional[str]
    Call_Disposition: Optional[str]
    Cancel_Reason: Optional[str]
    WhichQueue: str
    Call_Is_Active: bool
    RequestToCancel: bool
    Stacked: bool
    Reopened: bool


class IncidentsResponse(_Record):
    Success: bool
    Error: Optional[str] = None
    Incidents: Optional[List[IncidentRecord]]

    @property
    def records(self) -> List[IncidentRecord]:
        return self.Incidents or []


# Units

class UnitRecord(_Record):
    UnitID: int
    UnitName: str
    VehicleID: Union[int, str]
    VehicleName: str
    StatusName: str
    Latitude: float
    Longitude: float
    IncidentID: Optional[int]
    Agency: str
    Jurisdiction: str
    JurisdictionCode: str
    CurrentLocation: Optional[str]
    Speed: Optional[float]
    DestinationLatitude: Optional[float]
    DestinationLongitude: Optional[float]
    Heading: Optional[float]
    Personel: List[str]


class UnitsResponse(_Record):
    Success: bool
    Error: Optional[str] = None
    Units: List[UnitRecord]

    @property
    def records(self) -> List[UnitRecord]:
        return self.Units


RESPONSE_MODELS = {
    "incidents": IncidentsResponse,
    "units": UnitsResponse,
}

RECORD_MODELS = {
    "incidents": IncidentRecord,
    "units": UnitRecord,
}

ENDPOINTS = {
    "incidents": "/v1/GetActiveIncidentsByJurisdiction",
    "units": "/v1/GetActiveUnitsByJurisdiction",
}


# Configuration

class AgencyRef(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    id: StrictStr = Field(description="The agency ID")
    name: StrictStr = Field(description="The agency name")


class InputConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    API_URL: StrictStr = Field(
        min_length=1,
        description="The URL of the API to fetch data from (Typically ends with /Production)",
    )
    API_Token: StrictStr = Field(min_length=1, description="The API token for authentication")
    DataType: DataTypeName = Field(default="incidents", description="The type of data to fetch")
    Agencies: List[AgencyRef]
    DEBUG: StrictBool = Field(default=False, description="Print results in logs")


def describe_validation_error(exc: ValidationError, limit: int = 3) -> str:
    """Summarise a pydantic ValidationError as '<loc>: <msg>; ...'."""
    details = []
    for error in exc.errors()[:limit]:
        loc = ".".join(str(part) for part in error["loc"]) or "<root>"
        details.append(f"{loc}: {error['msg']}")
    remaining = exc.error_count() - limit
    if remaining > 0:
        details.append(f"... and {remaining} more")
    return "; ".join(details)


def validate_response(body: str, data_type: str, agency, debug: bool = False):
    """Validate a raw response body for ``data_type``.

    Returns the parsed response model. Raises SchemaValidationError when the
    body is not JSON or does not match the expected envelope. ``Success`` is
    not checked here; the caller records API-reported failures.
    """
    model = RESPONSE_MODELS[data_type]
    if debug:
        logger.info(f"Validating {len(body)} byte {data_type} response for {agency.name} ({agency.id})")
        logger.debug(f"Raw response for {agency.id}: {body[:2000]}")
    try:
        response = model.model_validate_json(body)
    except ValidationError as e:
        if debug:
            for error in e.errors():
                logger.info(f"Validation error for {agency.id} at {error['loc']}: {error['msg']} (input type {type(error.get('input')).__name__})")
        raise SchemaValidationError(
            agency, f"Invalid {data_type} response: {describe_validation_error(e)}"
        ) from e
    if debug:
        logger.info(f"Validated {len(response.records)} {data_type} for {agency.name} (Success={response.Success})")
    return response


def schema(schema_type: str = "input", data_type: str = "incidents") -> Dict:
    """Return the JSON schema of the configuration or of one output record.

    The output schema depends on the configured data type.
    """
    if schema_type == "input":
        return InputConfig.model_json_schema()
    if schema_type == "output":
        if data_type not in RECORD_MODELS:
            raise UnsupportedDataType(data_type)
        return RECORD_MODELS[data_type].model_json_schema()
    raise ValueError(f"Unknown schema type: {schema_type!r}")
