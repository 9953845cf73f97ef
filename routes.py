"""
Crew Pairing Parser - API Routes
Upload-and-parse, plus parsing of pairing files kept in the data folder.
"""

import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Optional

from flask import Blueprint, current_app, jsonify, request

from cache import PairingCache, document_key
from diagnostics import DebugCollector
from pdf_text import ExtractionFailed, allowed_file, file_ext, parse_pairing_document, ALLOWED_EXTS

logger = logging.getLogger(__name__)

# ══════════════════════════════════════════════════════════════════════════════
# CONFIG
# ══════════════════════════════════════════════════════════════════════════════
DATA_FOLDER = os.getenv(
    "DATA_FOLDER",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data")
)
MAX_FILE_BYTES = int(os.getenv("MAX_FILE_BYTES", str(20 * 1024 * 1024)))
DEBUG_MODE_DEFAULT = os.getenv("PAIRING_DEBUG", "0") == "1"

pairings_bp = Blueprint("pairings", __name__, url_prefix="/api/pairings")


# ==================== HELPER FUNCTIONS ====================

def _limit_arg() -> Optional[int]:
    raw = request.args.get("limit")
    if raw in (None, ""):
        return None
    try:
        limit = int(raw)
    except ValueError:
        raise ValueError(f"limit must be an integer, got '{raw}'") from None
    if limit < 0:
        raise ValueError("limit must be >= 0")
    return limit


def _debug_on() -> bool:
    return request.args.get("debug", "0") in ("1", "true", "yes") or DEBUG_MODE_DEFAULT


def _cache() -> PairingCache:
    return current_app.extensions["pairing_cache"]


def _parse(data: bytes, filename: str):
    """Parse through the cache and build the JSON response."""
    try:
        limit = _limit_arg()
    except ValueError as e:
        return jsonify({"error": str(e)}), 400

    debug_on = _debug_on()
    dbg = DebugCollector(enabled=debug_on)

    def compute() -> dict:
        return parse_pairing_document(data, filename, limit=limit, dbg=dbg).to_dict()

    try:
        if debug_on:
            # debug output has to come from a real run, so skip the cache
            result, cached = compute(), False
        else:
            result, cached = _cache().get_or_compute(
                document_key(data, limit), compute, source_name=filename
            )
    except ExtractionFailed as e:
        logger.warning("Extraction failed for %s: %s", filename, e)
        resp = {"error": f"Could not extract text from '{filename}': {e}"}
        if debug_on:
            resp["debug"] = dbg.to_dict()
        return jsonify(resp), 422

    resp = dict(result)
    resp["source"] = Path(filename).stem
    resp["cached"] = cached
    if debug_on:
        resp["debug"] = dbg.to_dict()
    return jsonify(resp), 200


# ==================== PARSE ROUTES ====================

@pairings_bp.route("/parse", methods=["POST"])
def parse_upload():
    """
    POST /api/pairings/parse
    Content-Type: multipart/form-data
    Field: file  (.pdf pairing document, or .txt with its extracted text)
    Query params:
        ?limit=N   → stop after N completed pairings
        ?debug=1   → embed classification steps in the response

    Errors:
        400  missing field / empty file / bad limit
        413  file too large
        415  unsupported file type
        422  text extraction failed
    """
    if "file" not in request.files:
        return jsonify({"error": "Field 'file' is required"}), 400

    file = request.files["file"]
    if not file or not file.filename:
        return jsonify({"error": "Empty file"}), 400

    if not allowed_file(file.filename):
        return jsonify({
            "error": (
                f"Unsupported file type '{file_ext(file.filename)}'. "
                f"Allowed: {', '.join(sorted(ALLOWED_EXTS))}"
            )
        }), 415

    data = file.read(MAX_FILE_BYTES + 1)
    if len(data) > MAX_FILE_BYTES:
        return jsonify({
            "error": f"File too large. Max: {MAX_FILE_BYTES // 1_048_576} MB"
        }), 413
    if not data:
        return jsonify({"error": "Empty file"}), 400

    return _parse(data, file.filename)


# ==================== DATA FILE ROUTES ====================

@pairings_bp.route("/data-files", methods=["GET"])
def list_data_files():
    """Pairing PDFs in the data folder, newest first."""
    data_dir = Path(DATA_FOLDER)
    if not data_dir.is_dir():
        logger.info("Data folder %s does not exist, creating it", data_dir)
        try:
            data_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            logger.exception("Could not create data folder %s", data_dir)
            return jsonify({"error": "Failed to create data directory"}), 500

    files = []
    for path in data_dir.iterdir():
        if not path.is_file() or file_ext(path.name) != "pdf":
            continue
        stats = path.stat()
        files.append({
            "name": path.name,
            "size": stats.st_size,
            "last_modified": datetime.fromtimestamp(stats.st_mtime).isoformat(),
            "_mtime": stats.st_mtime,
        })

    files.sort(key=lambda f: f["_mtime"], reverse=True)
    for f in files:
        del f["_mtime"]
    return jsonify({"files": files})


@pairings_bp.route("/data-files/<name>", methods=["GET"])
def parse_data_file(name):
    """Parse a pairing file from the data folder."""
    data_dir = Path(DATA_FOLDER).resolve()
    path = (data_dir / name).resolve()
    if path.parent != data_dir or not allowed_file(path.name):
        return jsonify({"error": "File not found"}), 404
    if not path.is_file():
        return jsonify({"error": "File not found"}), 404

    return _parse(path.read_bytes(), path.name)
