#!/usr/bin/env python3
"""
Configuration resolution and validation for the Dispatch Feature ETL.

resolve_config() turns a raw mapping into a validated InputConfig before any
network call is made. Run this module as a script to check config.py.
"""

import argparse
import importlib
import sys
import logging
from typing import Any, Dict, List, Mapping, Tuple
from urllib.parse import urlparse

import requests
from pydantic import ValidationError

from dispatch_errors import ConfigurationError, UnsupportedDataType
from dispatch_schemas import DATA_TYPES, ENDPOINTS, InputConfig, describe_validation_error

logger = logging.getLogger(__name__)

# config.py constant -> InputConfig field
CONFIG_KEYS = {
    "API_URL": "API_URL",
    "API_TOKEN": "API_Token",
    "DATA_TYPE": "DataType",
    "AGENCIES": "Agencies",
    "DEBUG": "DEBUG",
}

DEFAULT_SETTINGS: Dict[str, Any] = {
    "FETCH_MODE": "per-agency",
    "MAX_WORKERS": 1,
    "REQUEST_TIMEOUT": 30,
    "OUTPUT_PATH": "features.json",
    "SUBMIT_ENDPOINT": None,
    "SUBMIT_TOKEN": None,
    "LOG_FILE": "dispatch.log",
    "LOG_FORMAT": "%(asctime)s - %(levelname)s - %(message)s",
    "LOG_LEVEL": "INFO",
    "DEBUG_LOG_FORMAT": "%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
    "METRICS_ENABLED": True,
    "METRICS_LOG_FILE": "dispatch_metrics.log",
    "WEBHOOK_HOST": "0.0.0.0",
    "WEBHOOK_PORT": 8080,
}

FETCH_MODES = ("per-agency", "batch")


def resolve_config(raw: Mapping[str, Any]) -> InputConfig:
    """Validate the run parameters. Raises ConfigurationError or UnsupportedDataType."""
    data_type = raw.get("DataType", "incidents")
    if data_type not in DATA_TYPES:
        raise UnsupportedDataType(data_type)
    try:
        return InputConfig.model_validate(dict(raw))
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {describe_validation_error(e, limit=10)}") from e


def load_config_module(module_name: str = "config") -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Read config.py into (raw input config, connector settings)."""
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Failed to import configuration module {module_name!r}: {str(e)}") from e

    raw = {
        field: getattr(module, constant)
        for constant, field in CONFIG_KEYS.items()
        if hasattr(module, constant)
    }
    settings = {
        name: getattr(module, name, default)
        for name, default in DEFAULT_SETTINGS.items()
    }
    return raw, settings


def validate_url(url: str, require_https: bool = True) -> bool:
    """Validate URL format and, optionally, the HTTPS requirement."""
    try:
        result = urlparse(url)
    except (TypeError, ValueError, AttributeError):
        return False
    if not all([result.scheme, result.netloc]):
        return False
    return result.scheme == 'https' if require_https else result.scheme in ('http', 'https')


def validate_agencies(agencies: Any) -> List[str]:
    """Validate agency entries beyond what the schema enforces."""
    errors = []
    if not isinstance(agencies, list):
        return ["AGENCIES must be a list"]

    seen = set()
    for i, agency in enumerate(agencies):
        if not isinstance(agency, Mapping):
            errors.append(f"Agency {i + 1}: must be a mapping with 'id' and 'name'")
            continue
        for field in ('id', 'name'):
            if field not in agency:
                errors.append(f"Agency {i + 1}: Missing required field: {field}")
        agency_id = agency.get('id')
        if isinstance(agency_id, str) and not agency_id.strip():
            errors.append(f"Agency {i + 1}: Agency ID must not be empty")
        if agency_id in seen:
            errors.append(f"Agency {i + 1}: Duplicate agency ID {agency_id!r}")
        seen.add(agency_id)
    return errors


def validate_timing_settings(settings: Mapping[str, Any]) -> List[str]:
    """Validate timing and concurrency settings."""
    errors = []

    numeric_settings = {
        'MAX_WORKERS': (int, 1, 32),
        'REQUEST_TIMEOUT': (int, 1, 300),
    }

    for setting, (type_, min_, max_) in numeric_settings.items():
        if setting in settings:
            try:
                value = type_(settings[setting])
                if not min_ <= value <= max_:
                    errors.append(f"{setting} must be between {min_} and {max_}")
            except (ValueError, TypeError):
                errors.append(f"{setting} must be a {type_.__name__}")

    if settings.get('FETCH_MODE', 'per-agency') not in FETCH_MODES:
        errors.append(f"FETCH_MODE must be one of: {', '.join(FETCH_MODES)}")

    return errors


def validate_logging_settings(settings: Mapping[str, Any]) -> List[str]:
    """Validate logging-related settings."""
    errors = []

    valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
    if 'LOG_LEVEL' in settings and settings['LOG_LEVEL'] not in valid_levels:
        errors.append(f"LOG_LEVEL must be one of: {', '.join(valid_levels)}")

    if 'METRICS_ENABLED' in settings and not isinstance(settings['METRICS_ENABLED'], bool):
        errors.append("METRICS_ENABLED must be a boolean")

    for setting in ('LOG_FILE', 'METRICS_LOG_FILE', 'LOG_FORMAT', 'DEBUG_LOG_FORMAT'):
        if setting in settings and (not isinstance(settings[setting], str) or not settings[setting]):
            errors.append(f"{setting} must be a non-empty string")

    return errors


def validate_sink_settings(settings: Mapping[str, Any]) -> List[str]:
    errors = []
    endpoint = settings.get('SUBMIT_ENDPOINT')
    if endpoint is not None and not validate_url(endpoint, require_https=False):
        errors.append("SUBMIT_ENDPOINT must be an http(s) URL")
    if endpoint is None and not settings.get('OUTPUT_PATH'):
        errors.append("Either OUTPUT_PATH or SUBMIT_ENDPOINT must be set")
    return errors


def validate_settings(settings: Mapping[str, Any]) -> List[str]:
    return (
        validate_timing_settings(settings)
        + validate_logging_settings(settings)
        + validate_sink_settings(settings)
    )


def test_api_connection(config: InputConfig, agency, timeout: int = 10) -> bool:
    """Check that the dispatch API answers a request for a single agency code."""
    url = f"{config.API_URL.rstrip('/')}{ENDPOINTS[config.DataType]}"
    try:
        response = requests.post(
            url,
            headers={
                'Content-Type': 'application/json',
                'x-api-key': config.API_Token
            },
            json={'JurisdictionCodes': [agency.id]},
            timeout=timeout
        )
        return response.ok
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to connect to dispatch API for {agency.name}: {str(e)}")
        return False


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Validate the Dispatch Feature ETL configuration.")
    parser.add_argument(
        "--config-module",
        default="config",
        help="Python module holding the configuration constants (default: config)",
    )
    parser.add_argument(
        "--check-api",
        action="store_true",
        help="Send one test request per agency to the dispatch API",
    )
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Main validation function."""
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
    args = parse_args(argv)

    try:
        raw, settings = load_config_module(args.config_module)
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    errors = []
    warnings = []

    config = None
    try:
        config = resolve_config(raw)
    except ConfigurationError as e:
        errors.append(str(e))

    if 'API_URL' in raw and not validate_url(raw['API_URL']):
        warnings.append("API_URL is not an https URL")

    errors.extend(validate_agencies(raw.get('Agencies', [])))
    errors.extend(validate_settings(settings))

    if config is not None and args.check_api:
        for agency in config.Agencies:
            if not test_api_connection(config, agency, timeout=settings['REQUEST_TIMEOUT']):
                warnings.append(f"Could not reach the dispatch API for {agency.name} ({agency.id})")

    # Report results
    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"- {error}")
        return 1

    if warnings:
        logger.warning("Configuration validation completed with warnings:")
        for warning in warnings:
            logger.warning(f"- {warning}")
    else:
        logger.info("Configuration validation completed successfully")
    return 0


if __name__ == '__main__':
    sys.exit(main())
