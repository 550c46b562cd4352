import json
import logging
from typing import Dict, Optional

import requests

from dispatch_errors import SubmissionError
from metrics_logger import track_submission

logger = logging.getLogger(__name__)


class FileSink:
    """Write the feature collection to a JSON file, replacing the previous run's output."""

    def __init__(self, output_path: str = "features.json"):
        self.output_path = output_path

    @track_submission
    def __call__(self, collection: Dict) -> None:
        try:
            with open(self.output_path, "w") as f:
                json.dump(collection, f, indent=2)
        except OSError as e:
            raise SubmissionError(f"Could not write feature collection to {self.output_path}: {e}") from e
        logger.info(f"Feature collection written to {self.output_path} with {len(collection['features'])} features.")


class HttpSink:
    """POST the feature collection to a collector endpoint. Failures are not retried."""

    def __init__(self, endpoint: str, token: Optional[str] = None, timeout: int = 30, session=None):
        self.endpoint = endpoint
        self.token = token
        self.timeout = timeout
        self.session = session

    @track_submission
    def __call__(self, collection: Dict) -> None:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = self.token
        logger.debug(f"Submitting {len(collection['features'])} features to {self.endpoint}")
        session = self.session or requests.Session()
        try:
            response = session.post(
                self.endpoint,
                headers=headers,
                json=collection,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise SubmissionError(f"Error submitting feature collection to {self.endpoint}: {str(e)}") from e
        finally:
            if self.session is None:
                session.close()
        logger.info(f"Successfully submitted {len(collection['features'])} features to {self.endpoint}")
