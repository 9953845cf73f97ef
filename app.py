from dotenv import load_dotenv
load_dotenv()

import logging
import os

from flask import Flask, jsonify

from cache import DEFAULT_TTL_SECONDS, DocumentStore, PairingCache
from routes import MAX_FILE_BYTES, pairings_bp

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CACHE_TTL = int(os.getenv("PAIRING_CACHE_TTL", str(DEFAULT_TTL_SECONDS)))
STORE_ENABLED = os.getenv("PAIRING_STORE", "0") == "1"


def _build_store():
    """Persistent parsed-document store, only when PAIRING_STORE=1."""
    if not STORE_ENABLED:
        return None
    from extensions import SessionLocal, init_db
    init_db()
    return DocumentStore(SessionLocal, ttl_seconds=CACHE_TTL)


def create_app(cache: PairingCache = None) -> Flask:
    app = Flask(__name__)
    # Leave headroom over the upload cap for the multipart envelope
    app.config["MAX_CONTENT_LENGTH"] = MAX_FILE_BYTES + 1024 * 1024

    if cache is None:
        cache = PairingCache(ttl_seconds=CACHE_TTL, store=_build_store())
    app.extensions["pairing_cache"] = cache

    app.register_blueprint(pairings_bp)

    @app.route("/health")
    def health():
        return jsonify({"status": "ok"})

    logger.info("Pairing parser app ready (cache ttl=%ss, store=%s)", CACHE_TTL, STORE_ENABLED)
    return app


if __name__ == "__main__":
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=True)
