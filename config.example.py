# Dispatch API
API_URL = "YOUR_DISPATCH_API_URL"  # Example: "https://api.example.com/Production"
API_TOKEN = "YOUR_API_KEY"  # Sent as the x-api-key header
DATA_TYPE = "incidents"  # "incidents" or "units"

# Agency Configuration
AGENCIES = [
    {
        "id": "YOUR_JURISDICTION_CODE",  # Example: "JCFD"
        "name": "YOUR_AGENCY_NAME"  # Example: "County Fire District"
    }
]

# Fetch Configuration
FETCH_MODE = "per-agency"  # "per-agency" or "batch" (one request for all agencies)
MAX_WORKERS = 1  # Agencies fetched concurrently; 1 fetches them one at a time
REQUEST_TIMEOUT = 30  # seconds

# Output Configuration
OUTPUT_PATH = "features.json"  # FeatureCollection written here when SUBMIT_ENDPOINT is unset
SUBMIT_ENDPOINT = None  # Example: "https://map.example.com/api/layer/1/features"
SUBMIT_TOKEN = None  # Example: "Bearer xxxxxxxx"

# Logging Configuration
LOG_FILE = "dispatch.log"
LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
LOG_LEVEL = "INFO"

# Debug Configuration
DEBUG = False  # Set to True to log API responses and validation details
DEBUG_LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s"  # More detailed format

# Metrics Configuration
METRICS_ENABLED = True  # Enable/disable metrics collection
METRICS_LOG_FILE = "dispatch_metrics.log"  # Separate file for metrics

# Webhook Configuration
WEBHOOK_HOST = "0.0.0.0"
WEBHOOK_PORT = 8080
