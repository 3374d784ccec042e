"""
Flask demo for logbatch_sdk.

Demonstrates the long-lived (volatile) pipeline in a real Flask application:
- log_middleware:    per-client session ids and the 503 guard
- SessionLogHandler: app logs are buffered per session
- ingest_blueprint:  POST /logs for external producers

Records are flushed to Elasticsearch every FLUSH_COUNT records per session.

Usage:
    LOGBATCH_SINK_URL=http://localhost:9200 python3 app.py
    curl -c jar -b jar localhost:5000/order/1
    curl -X POST localhost:5000/logs -H 'Content-Type: application/json' \\
        -d '{"session_id": "cli", "message": "hello", "level": "INFO"}'
"""

import atexit
import logging
import os

from flask import Flask, jsonify

from logbatch_sdk.config import LoggerConfiguration, load_config
from logbatch_sdk.flask_middleware import ingest_blueprint, log_middleware
from logbatch_sdk.handler import LineFormatter, SessionLogHandler
from logbatch_sdk.pipeline import build_entrypoint


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

FLUSH_COUNT = int(os.environ.get("FLUSH_COUNT", "5"))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

entrypoint = build_entrypoint(load_config())
atexit.register(entrypoint.flush_all)


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------

app = Flask(__name__)
app.secret_key = os.environ.get("FLASK_SECRET_KEY", "dev-only-secret")

log_middleware(app)
app.register_blueprint(ingest_blueprint(entrypoint))

handler = SessionLogHandler(
    entrypoint,
    LoggerConfiguration(flush_count=FLUSH_COUNT, sink_target="shop-{session_id}"),
)
handler.setFormatter(LineFormatter())
app.logger.addHandler(handler)
app.logger.setLevel(logging.INFO)


@app.route("/order/<int:order_id>")
def order(order_id: int):
    app.logger.info(f"Looking up order {order_id}")
    if order_id == 0:
        raise RuntimeError("order service down")
    app.logger.info(f"Order {order_id} found")
    return jsonify({"order_id": order_id, "status": "shipped"})


@app.route("/health")
def health():
    return jsonify({"status": "ok", "flush": entrypoint.coordinator.counters})


if __name__ == "__main__":
    app.run(port=5000)
