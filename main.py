from flask import Flask, request, jsonify
from flask_cors import CORS
from settlement import DealSettlementCoordinator, SettlementConfig
import os
import logging

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = Flask(__name__)

# Enable CORS for all routes (the dealership front-end calls the API directly)
CORS(app)

# Initialize the settlement coordinator with policy from the environment
coordinator = DealSettlementCoordinator(SettlementConfig.from_env())


def _run(handler, label):
    """Run an engine call and map its outcome to an HTTP response."""
    try:
        input_data = request.get_json(force=True, silent=True)

        if not input_data or not isinstance(input_data, dict):
            return jsonify({
                "error": "No input data provided",
                "status": "failed"
            }), 400

        logger.info(f"Processing {label}: {input_data.get('deal_name', 'Unknown')}")

        result = handler(input_data)

        if result.get("status") == "rejected":
            logger.info(f"{label} rejected: {result['error']['kind']}")
            return jsonify(result), 422

        logger.info(f"{label} processed successfully")

        return jsonify(result), 200

    except (ValueError, KeyError, TypeError) as e:
        # Validation errors from engine
        logger.error(f"Validation error: {str(e)}")
        return jsonify({
            "error": str(e),
            "status": "validation_failed"
        }), 400

    except Exception as e:
        # Unexpected errors
        logger.error(f"Processing error: {str(e)}", exc_info=True)
        return jsonify({
            "error": str(e),
            "status": "failed"
        }), 500


@app.route("/api", methods=["GET"])
def api_info():
    """API information endpoint"""
    return jsonify({
        "status": "ok",
        "message": "Deal Settlement Engine API",
        "version": "1.0",
        "endpoints": {
            "settle_deal": "/settle_deal [POST]",
            "simulate_commission": "/commission/simulate [POST]",
            "vehicle_dre": "/vehicle_dre [POST]",
            "installment": "/installment [POST]",
            "health": "/health [GET]"
        }
    }), 200


@app.route("/health", methods=["GET"])
def health():
    """Health check for monitoring"""
    return jsonify({"status": "healthy"}), 200


@app.route("/settle_deal", methods=["POST"])
def settle_deal():
    """Settle a vehicle sale: payments, DRE and commission."""
    return _run(coordinator.settle_from_dict, "settlement")


@app.route("/commission/simulate", methods=["POST"])
def simulate_commission():
    """Resolve the commission for hypothetical sale figures."""
    return _run(coordinator.simulate_commission_from_dict, "commission simulation")


@app.route("/vehicle_dre", methods=["POST"])
def vehicle_dre():
    """Compute a vehicle's profitability statement."""
    return _run(coordinator.vehicle_dre_from_dict, "vehicle DRE")


@app.route("/installment", methods=["POST"])
def installment():
    """Compute a financing installment (and optionally its schedule)."""
    return _run(coordinator.installment_from_dict, "installment")


if __name__ == "__main__":
    port = int(os.environ.get("PORT", 8080))
    app.run(host="0.0.0.0", port=port, debug=False)
