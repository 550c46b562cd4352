import json
import logging

import uvicorn
from fastapi import FastAPI, Request

from dispatch_errors import ConfigurationError
from validate_config import load_config_module

logger = logging.getLogger(__name__)

RECEIVED = {"status": 200, "message": "Received"}


### App ###

def create_app(debug: bool = False) -> FastAPI:
    """Build the webhook app. Payloads are acknowledged and logged, never turned into features."""
    app = FastAPI(
        title="Dispatch Feature ETL Webhook",
        description="Accepts push notifications from the dispatch API.",
    )

    @app.post("/{webhook_id}")
    async def receive_webhook(webhook_id: str, request: Request):
        body = await request.body()
        try:
            payload = json.loads(body) if body else None
        except json.JSONDecodeError:
            logger.warning(f"Webhook {webhook_id} received a body that is not JSON ({len(body)} bytes)")
            payload = None

        if debug:
            logger.info(f"Webhook {webhook_id} payload: {json.dumps(payload)}")
        return RECEIVED

    return app


app = create_app()

### Start Server ###

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    try:
        raw, settings = load_config_module()
    except ConfigurationError as e:
        logger.error(f"Configuration error: {str(e)}")
        raise SystemExit(2)
    uvicorn.run(
        create_app(debug=bool(raw.get("DEBUG", False))),
        host=settings["WEBHOOK_HOST"],
        port=settings["WEBHOOK_PORT"],
        log_level="debug" if raw.get("DEBUG") else "info",
    )
