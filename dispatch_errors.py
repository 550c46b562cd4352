from dataclasses import dataclass
from typing import Dict, Iterable, Iterator, List, Optional


class DispatchError(Exception):
    """Base class for all connector errors."""


class ConfigurationError(DispatchError):
    """Raised when the run configuration is missing or malformed."""


class UnsupportedDataType(ConfigurationError):
    def __init__(self, data_type):
        self.data_type = data_type
        super().__init__(f"Unsupported DataType: {data_type!r} (expected 'incidents' or 'units')")


class SubmissionError(DispatchError):
    """Raised when the output sink refuses the feature collection."""


@dataclass(frozen=True)
class RunError:
    agency_id: str
    agency_name: str
    kind: str
    message: str

    def __str__(self) -> str:
        return f"{self.agency_name} ({self.agency_id}): {self.message}"

    def to_dict(self) -> Dict:
        return {
            "agency_id": self.agency_id,
            "agency_name": self.agency_name,
            "kind": self.kind,
            "message": self.message,
        }


class AgencyFetchError(DispatchError):
    """A failure isolated to one agency's request; recorded, never fatal."""

    kind = "agency_error"

    def __init__(self, agency, message: str):
        self.agency = agency
        super().__init__(message)

    def to_run_error(self) -> RunError:
        return RunError(self.agency.id, self.agency.name, self.kind, str(self))


class TransportError(AgencyFetchError):
    kind = "transport"


class HTTPStatusError(AgencyFetchError):
    kind = "http_status"

    def __init__(self, agency, status_code: int, reason: Optional[str], body: str = ""):
        self.status_code = status_code
        self.reason = reason or ""
        self.body = body
        super().__init__(agency, f"HTTP {status_code} {self.reason}".rstrip())


class SchemaValidationError(AgencyFetchError):
    kind = "schema"


class APIReportedFailure(AgencyFetchError):
    kind = "api"


class RunErrors:
    """Ordered accumulator of per-agency errors for a single run."""

    def __init__(self, errors: Optional[Iterable[RunError]] = None):
        self._errors: List[RunError] = list(errors or [])

    def append(self, error: RunError) -> None:
        self._errors.append(error)

    def extend(self, errors: Iterable[RunError]) -> None:
        self._errors.extend(errors)

    def __len__(self) -> int:
        return len(self._errors)

    def __bool__(self) -> bool:
        return bool(self._errors)

    def __iter__(self) -> Iterator[RunError]:
        return iter(self._errors)

    def render(self) -> str:
        lines = [f"{len(self._errors)} error(s) occurred:"]
        lines.extend(str(error) for error in self._errors)
        return "\n".join(lines)


class AggregatedRunFailure(DispatchError):
    """Raised once per run, after submission, when any agency failed."""

    def __init__(self, errors: RunErrors):
        self.errors = errors
        super().__init__(errors.render())
