"""
AWS Lambda handler for the Deal Settlement Engine API.

This is the production entry point for AWS Lambda deployments.
For local development, use main.py (Flask app) instead.
"""

import base64
import json
import logging
import os

from settlement import DealSettlementCoordinator, SettlementConfig

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)

# Environment (dev, staging, prod)
ENVIRONMENT = os.environ.get("ENVIRONMENT", "dev")

# Initialize coordinator (reused across warm invocations)
coordinator = DealSettlementCoordinator(SettlementConfig.from_env())

# CORS headers for API Gateway
CORS_HEADERS = {
    "Content-Type": "application/json",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "Content-Type,Authorization",
    "Access-Control-Allow-Methods": "GET,POST,OPTIONS",
}

# POST routes -> (engine call, label for logs)
POST_ROUTES = {
    "/settle_deal": (coordinator.settle_from_dict, "settlement"),
    "/commission/simulate": (coordinator.simulate_commission_from_dict, "commission simulation"),
    "/vehicle_dre": (coordinator.vehicle_dre_from_dict, "vehicle DRE"),
    "/installment": (coordinator.installment_from_dict, "installment"),
}


def lambda_handler(event, context):
    """
    Main Lambda entry point.

    Handles API Gateway events for:
    - GET /health, GET /api
    - POST /settle_deal, /commission/simulate, /vehicle_dre, /installment
    - OPTIONS (CORS preflight)
    """
    # Handle CORS preflight
    http_method = event.get("httpMethod") or event.get("requestContext", {}).get("http", {}).get("method", "")
    if http_method == "OPTIONS":
        return {"statusCode": 200, "headers": CORS_HEADERS, "body": ""}

    # Get path (supports both REST API and HTTP API formats)
    path = event.get("path") or event.get("rawPath", "")

    # Route to appropriate handler
    if path == "/health" and http_method == "GET":
        return handle_health()
    elif path == "/api" and http_method == "GET":
        return handle_api_info()
    elif path in POST_ROUTES and http_method == "POST":
        handler, label = POST_ROUTES[path]
        return handle_engine_call(event, handler, label)
    else:
        return _response(404, {"error": "Not found", "path": path})


def _response(status_code, payload):
    return {"statusCode": status_code, "headers": CORS_HEADERS, "body": json.dumps(payload)}


def handle_health():
    """Health check endpoint."""
    return _response(200, {"status": "healthy", "environment": ENVIRONMENT})


def handle_api_info():
    """API information endpoint."""
    return _response(
        200,
        {
            "status": "ok",
            "message": "Deal Settlement Engine API",
            "version": "1.0",
            "environment": ENVIRONMENT,
            "runtime": "AWS Lambda",
            "endpoints": {path: f"{path} [POST]" for path in POST_ROUTES} | {"health": "/health [GET]"},
        },
    )


def handle_engine_call(event, handler, label):
    """Run an engine call on the request body."""
    try:
        # Parse request body
        body = event.get("body", "")
        if isinstance(body, str):
            if not body:
                return _response(400, {"error": "No input data provided", "status": "failed"})
            # Handle base64 encoded body (API Gateway)
            if event.get("isBase64Encoded"):
                body = base64.b64decode(body).decode("utf-8")
            input_data = json.loads(body)
        else:
            input_data = body

        if not isinstance(input_data, dict):
            return _response(400, {"error": "Request body must be a JSON object", "status": "failed"})

        deal_name = input_data.get("deal_name", "Unknown")
        logger.info(f"Processing {label}: {deal_name}")

        result = handler(input_data)

        if result.get("status") == "rejected":
            logger.info(f"{label} rejected for {deal_name}: {result['error']['kind']}")
            return _response(422, result)

        logger.info(f"{label} processed successfully: {deal_name}")

        return _response(200, result)

    except json.JSONDecodeError as e:
        logger.error(f"JSON parse error: {str(e)}")
        return _response(400, {"error": f"Invalid JSON: {str(e)}", "status": "failed"})

    except (ValueError, KeyError, TypeError) as e:
        # Validation errors from engine (missing fields, invalid types, etc.)
        logger.error(f"Validation error: {str(e)}")
        return _response(400, {"error": f"Validation error: {str(e)}", "status": "validation_failed"})

    except Exception as e:
        # Unexpected errors - log details but return generic message to avoid information disclosure
        logger.error(f"Unexpected processing error: {str(e)}", exc_info=True)
        return _response(
            500, {"error": "An unexpected error occurred during processing", "status": "failed"}
        )
