import requests
import json
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
import argparse
import signal
import sys
from typing import Callable, Dict, List, Optional
from dataclasses import dataclass, field

from dispatch_errors import (
    AgencyFetchError, AggregatedRunFailure, APIReportedFailure, ConfigurationError,
    HTTPStatusError, RunError, RunErrors, SubmissionError, TransportError
)
from dispatch_schemas import ENDPOINTS, AgencyRef, InputConfig, schema, validate_response
from feature_builder import build_feature_collection, build_features
from feature_sinks import FileSink, HttpSink
from metrics_logger import (
    configure_metrics, log_system_metrics, timing_context, track_api_call, track_processing
)
from validate_config import (
    DEFAULT_SETTINGS, load_config_module, resolve_config, validate_settings
)

PER_AGENCY = "per-agency"
BATCH = "batch"

logger = logging.getLogger(__name__)


@dataclass
class Metrics:
    agencies_attempted: int = 0
    agencies_failed: int = 0
    records_received: int = 0
    features_emitted: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None

    def duration(self) -> float:
        end = self.end_time or datetime.now(timezone.utc)
        return (end - self.start_time).total_seconds()

    def to_dict(self) -> Dict:
        """Convert metrics to a dictionary for structured logging."""
        self.end_time = self.end_time or datetime.now(timezone.utc)
        return {
            "duration_seconds": round(self.duration(), 2),
            "agencies_attempted": self.agencies_attempted,
            "agencies_failed": self.agencies_failed,
            "records_received": self.records_received,
            "features_emitted": self.features_emitted,
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
        }


@dataclass
class AgencyResult:
    agency: AgencyRef
    features: List[Dict] = field(default_factory=list)
    errors: List[RunError] = field(default_factory=list)
    records: int = 0
    failed: bool = False
    agency_count: int = 1


@dataclass
class RunResult:
    collection: Dict
    errors: RunErrors


class DispatchCollector:
    """Polls the dispatch API for each configured agency and assembles one feature collection."""

    def __init__(
        self,
        config: InputConfig,
        sink: Optional[Callable[[Dict], None]] = None,
        session: Optional[requests.Session] = None,
        fetch_mode: str = PER_AGENCY,
        max_workers: int = 1,
        request_timeout: int = 30,
    ):
        self.config = config
        self.sink = sink
        self.session = session
        self.fetch_mode = fetch_mode
        self.max_workers = max(1, max_workers)
        self.request_timeout = request_timeout
        self.metrics = Metrics()
        self.logger = logging.getLogger(__name__)

    @property
    def url(self) -> str:
        return f"{self.config.API_URL.rstrip('/')}{ENDPOINTS[self.config.DataType]}"

    def _agencies(self) -> List[AgencyRef]:
        agencies = []
        for agency in self.config.Agencies:
            if agency.id and agency.id.strip():
                agencies.append(agency)
            else:
                self.logger.warning(f"Skipping agency {agency.name!r} with an empty ID")
        return agencies

    def fetch(self, session: requests.Session, agency: AgencyRef, codes: List[str]) -> str:
        """POST one request for ``codes`` and return the response body.

        Raises TransportError or HTTPStatusError tagged with ``agency``.
        """
        self.logger.debug(f"Requesting {self.config.DataType} for {agency.name} ({agency.id}) from {self.url}")
        post = track_api_call(agency.id)(session.post)
        try:
            response = post(
                self.url,
                headers={
                    "Content-Type": "application/json",
                    "x-api-key": self.config.API_Token,
                },
                json={"JurisdictionCodes": codes},
                timeout=self.request_timeout,
            )
        except requests.exceptions.RequestException as e:
            raise TransportError(agency, f"Request failed: {str(e)}") from e

        if not 200 <= response.status_code < 300:
            self.logger.debug(f"Error response body for {agency.id}: {response.text[:500]}")
            raise HTTPStatusError(agency, response.status_code, response.reason, response.text)
        return response.text

    @track_processing
    def _extract_features(self, records) -> List[Dict]:
        return build_features(records, self.config.DataType)

    def process_agency(self, session: requests.Session, agency: AgencyRef, codes: Optional[List[str]] = None) -> AgencyResult:
        """Fetch, validate and extract features for a single agency.

        Per-agency failures are returned as run errors, never raised.
        """
        codes = codes if codes is not None else [agency.id]
        result = AgencyResult(agency)
        with timing_context("process_agency", agency_id=agency.id):
            request_start_time = time.monotonic()
            try:
                body = self.fetch(session, agency, codes)
                response = validate_response(body, self.config.DataType, agency, debug=self.config.DEBUG)
            except AgencyFetchError as e:
                self.logger.error(f"Error fetching {self.config.DataType} for {agency.name} ({agency.id}): {str(e)}")
                result.errors.append(e.to_run_error())
                result.failed = True
                return result

            if not response.Success:
                failure = APIReportedFailure(agency, f"API Error: {response.Error or 'Unknown error'}")
                self.logger.error(f"{agency.name} ({agency.id}): {str(failure)}")
                result.errors.append(failure.to_run_error())
                result.failed = True

            records = response.records
            result.records = len(records)
            result.features = self._extract_features(records)
            self.logger.info(
                f"Fetched {len(records)} {self.config.DataType} for {agency.name} ({agency.id}) "
                f"in {time.monotonic() - request_start_time:.2f} seconds; {len(result.features)} features."
            )
        return result

    def _process_all(self, session: requests.Session, agencies: List[AgencyRef]) -> List[AgencyResult]:
        if not agencies:
            return []

        if self.fetch_mode == BATCH:
            codes = [agency.id for agency in agencies]
            batch = AgencyRef(id=",".join(codes), name="All agencies")
            result = self.process_agency(session, batch, codes)
            result.agency_count = len(codes)
            return [result]

        if self.max_workers == 1 or len(agencies) <= 1:
            return [self.process_agency(session, agency) for agency in agencies]

        # map() yields in submission order, so the merge below stays in agency order
        with ThreadPoolExecutor(max_workers=min(self.max_workers, len(agencies))) as executor:
            return list(executor.map(lambda agency: self.process_agency(session, agency), agencies))

    def collect(self) -> RunResult:
        """Attempt every agency and return the assembled collection plus recorded errors."""
        self.logger.info(f"Starting dispatch {self.config.DataType} collection ({self.fetch_mode}).")
        agencies = self._agencies()
        if not agencies:
            self.logger.warning("No agencies configured to fetch data for.")

        session = self.session or requests.Session()
        try:
            results = self._process_all(session, agencies)
        finally:
            if self.session is None:
                session.close()

        features: List[Dict] = []
        errors = RunErrors()
        for result in results:
            features.extend(result.features)
            errors.extend(result.errors)
            self.metrics.agencies_attempted += result.agency_count
            self.metrics.records_received += result.records
            if result.failed:
                self.metrics.agencies_failed += result.agency_count
        self.metrics.features_emitted = len(features)

        return RunResult(build_feature_collection(features), errors)

    def submit(self, collection: Dict) -> None:
        if self.sink is None:
            raise SubmissionError("No output sink configured")
        self.logger.info(f"Submitting feature collection with {len(collection['features'])} features.")
        self.sink(collection)

    def _log_metrics(self):
        """Log final metrics in a single structured line."""
        self.logger.info("Collection metrics: %s", json.dumps(self.metrics.to_dict()))

    def run(self) -> RunResult:
        """Collect, submit once, then raise AggregatedRunFailure if any agency failed."""
        result = self.collect()
        try:
            self.submit(result.collection)
        finally:
            self.metrics.end_time = datetime.now(timezone.utc)
            self._log_metrics()

        if result.errors:
            raise AggregatedRunFailure(result.errors)
        return result


def collect(config: InputConfig, session: Optional[requests.Session] = None, **options) -> RunResult:
    """Run the fetch/validate/extract pipeline without submitting."""
    return DispatchCollector(config, session=session, **options).collect()


def execute(config: InputConfig, sink: Callable[[Dict], None], session: Optional[requests.Session] = None, **options) -> RunResult:
    """Run the pipeline and submit the collection to ``sink``."""
    return DispatchCollector(config, sink, session=session, **options).run()


def setup_logging(debug: bool, settings: Dict) -> None:
    """Configure logging with file and console handlers."""
    # Configure the root logger
    root_logger = logging.getLogger()
    level = logging.DEBUG if debug else getattr(logging, settings["LOG_LEVEL"], logging.INFO)
    root_logger.setLevel(level)

    # Clear any existing handlers
    root_logger.handlers = []

    standard_formatter = logging.Formatter(settings["LOG_FORMAT"])
    debug_formatter = logging.Formatter(settings["DEBUG_LOG_FORMAT"])

    file_handler = logging.FileHandler(settings["LOG_FILE"])
    file_handler.setFormatter(debug_formatter if debug else standard_formatter)
    file_handler.setLevel(level)
    root_logger.addHandler(file_handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(standard_formatter)
    console_handler.setLevel(logging.ERROR)  # Only show ERROR and above in console
    root_logger.addHandler(console_handler)


def setup_signal_handlers(collector: DispatchCollector) -> None:
    """Setup signal handlers for graceful shutdown."""
    def signal_handler(signum, frame):
        logger.info("Received shutdown signal. Stopping collection...")
        collector.metrics.end_time = datetime.now(timezone.utc)
        collector._log_metrics()
        sys.exit(128 + signum)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def build_sink(settings: Dict) -> Callable[[Dict], None]:
    if settings.get("SUBMIT_ENDPOINT"):
        return HttpSink(settings["SUBMIT_ENDPOINT"], settings.get("SUBMIT_TOKEN"), timeout=settings["REQUEST_TIMEOUT"])
    return FileSink(settings["OUTPUT_PATH"])


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Poll the dispatch API and publish incidents or units as map features."
    )
    parser.add_argument(
        "--config-module",
        default="config",
        help="Python module holding the configuration constants (default: config)",
    )
    parser.add_argument(
        "--schema",
        choices=["input", "output"],
        help="Print the input configuration schema or the output record schema and exit",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        raw, settings = load_config_module(args.config_module)
        if args.schema == "input":
            print(json.dumps(schema("input"), indent=2))
            return 0
        config = resolve_config(raw)
    except ConfigurationError as e:
        logging.basicConfig(level=logging.INFO, format=DEFAULT_SETTINGS["LOG_FORMAT"])
        logger.error(f"Configuration error: {str(e)}")
        return 2

    if args.schema == "output":
        print(json.dumps(schema("output", config.DataType), indent=2))
        return 0

    setting_errors = validate_settings(settings)
    if setting_errors:
        logging.basicConfig(level=logging.INFO, format=DEFAULT_SETTINGS["LOG_FORMAT"])
        for error in setting_errors:
            logger.error(f"Configuration error: {error}")
        return 2

    try:
        setup_logging(config.DEBUG, settings)
        configure_metrics(settings["METRICS_LOG_FILE"], enabled=settings["METRICS_ENABLED"])
    except OSError as e:
        logging.basicConfig(level=logging.INFO, format=DEFAULT_SETTINGS["LOG_FORMAT"])
        logger.error(f"Configuration error: cannot open log file: {str(e)}")
        return 2

    collector = DispatchCollector(
        config,
        build_sink(settings),
        fetch_mode=settings["FETCH_MODE"],
        max_workers=settings["MAX_WORKERS"],
        request_timeout=settings["REQUEST_TIMEOUT"],
    )
    setup_signal_handlers(collector)

    if settings["METRICS_ENABLED"]:
        log_system_metrics()
    try:
        collector.run()
    except AggregatedRunFailure as e:
        logger.error(f"Run failed: {str(e)}")
        return 1
    except SubmissionError as e:
        logger.error(f"Submission failed: {str(e)}")
        return 1
    finally:
        if settings["METRICS_ENABLED"]:
            log_system_metrics()

    logger.info("Run completed successfully.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
