import logging
import time
import json
import psutil
from functools import wraps
from contextlib import contextmanager
from datetime import datetime, timezone

# Set up metrics logger; the file handler is attached by configure_metrics()
metrics_logger = logging.getLogger('dispatch_metrics')
metrics_logger.setLevel(logging.INFO)
metrics_logger.propagate = False

_enabled = True


def configure_metrics(log_file='dispatch_metrics.log', enabled=True, log_format='%(asctime)s - %(message)s'):
    """Attach the metrics file handler once and toggle metric emission."""
    global _enabled
    _enabled = enabled
    if not enabled:
        return
    for handler in metrics_logger.handlers:
        if isinstance(handler, logging.FileHandler) and handler.baseFilename.endswith(log_file):
            return

    # Create file handler
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(logging.INFO)
    file_handler.setFormatter(logging.Formatter(log_format))
    metrics_logger.addHandler(file_handler)


def log_metric(metric_type, value, **tags):
    """Log a metric with its associated tags."""
    if not _enabled:
        return
    metric = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "metric_type": metric_type,
        "value": value
    }
    metric.update(tags)
    metrics_logger.info(json.dumps(metric))


def log_system_metrics():
    """Log system-level metrics."""
    process = psutil.Process()
    with process.oneshot():
        log_metric(
            metric_type="system_cpu_percent",
            value=process.cpu_percent(),
            metric_unit="percent"
        )
        log_metric(
            metric_type="system_memory_usage",
            value=process.memory_info().rss / 1024 / 1024,  # Convert to MB
            metric_unit="MB"
        )
        log_metric(
            metric_type="system_thread_count",
            value=process.num_threads()
        )


@contextmanager
def timing_context(operation_name, **tags):
    """Context manager for timing operations."""
    start_time = time.perf_counter()
    try:
        yield
    finally:
        duration = (time.perf_counter() - start_time) * 1000  # Convert to milliseconds
        log_metric(
            metric_type="duration",
            value=duration,
            operation=operation_name,
            metric_unit="ms",
            **tags
        )


def track_api_call(agency_id):
    """Decorator to track API call metrics."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            status = "failure"
            try:
                result = func(*args, **kwargs)
                status = "success"
                # Log response size if available
                if hasattr(result, 'content'):
                    log_metric(
                        metric_type="api_response_size",
                        value=len(result.content),
                        agency_id=agency_id,
                        metric_unit="bytes"
                    )
            except Exception as e:
                log_metric(
                    metric_type="api_error",
                    value=1,
                    agency_id=agency_id,
                    error_type=type(e).__name__,
                    error_message=str(e)
                )
                raise
            finally:
                duration = (time.perf_counter() - start_time) * 1000
                log_metric(
                    metric_type="api_response_time",
                    value=duration,
                    agency_id=agency_id,
                    status=status,
                    metric_unit="ms"
                )
            return result
        return wrapper
    return decorator


def track_processing(func):
    """Decorator to track feature extraction metrics."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        status = "failure"
        try:
            result = func(*args, **kwargs)
            status = "success"
            feature_count = len(result) if hasattr(result, '__len__') else 1
            log_metric(
                metric_type="features_extracted",
                value=feature_count,
                status=status
            )
        except Exception as e:
            log_metric(
                metric_type="processing_error",
                value=1,
                error_type=type(e).__name__,
                error_message=str(e)
            )
            raise
        finally:
            duration = (time.perf_counter() - start_time) * 1000
            log_metric(
                metric_type="processing_time",
                value=duration,
                status=status,
                metric_unit="ms"
            )
        return result
    return wrapper


def track_submission(func):
    """Decorator to track feature collection submissions."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        status = "failure"
        try:
            result = func(*args, **kwargs)
            status = "success"
            log_metric(
                metric_type="collection_submit",
                value=1,
                status=status
            )
        except Exception as e:
            log_metric(
                metric_type="collection_submit",
                value=1,
                status=status,
                error_type=type(e).__name__,
                error_message=str(e)
            )
            raise
        finally:
            duration = (time.perf_counter() - start_time) * 1000
            log_metric(
                metric_type="collection_submit_time",
                value=duration,
                status=status,
                metric_unit="ms"
            )
        return result
    return wrapper
