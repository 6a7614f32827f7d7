"""
CashFlow: Statement ingestion JSON API.

Thin HTTP surface over ``cashflow.Ledger``: upload an export, confirm the
column mapping, re-categorise, and read back monthly figures, category
breakdowns and the forecast.  No HTML is rendered here.
"""

from __future__ import annotations

import json
import os
from datetime import date
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from flask import Flask, Response, current_app, request
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from cashflow.config import PipelineConfig
from cashflow.exporter import Exporter
from cashflow.logging_setup import get_logger
from cashflow.pipeline import Ledger
from cashflow.schema import ColumnMapping
from cashflow.tabular_reader import SourceKind, TabularParseError
from cashflow.validator import MappingValidationError

logger = get_logger("app")

ALLOWED_EXTENSIONS = {"csv", "tsv", "txt", "xlsx", "xlsm"}


# -------------------------------------------------------
# App Setup
# -------------------------------------------------------

def _config_from_env() -> PipelineConfig:
    data_dir = os.environ.get("CASHFLOW_DATA_DIR")
    return PipelineConfig(
        log_level=os.environ.get("CASHFLOW_LOG_LEVEL", "INFO"),
        data_dir=Path(data_dir) if data_dir else None,
    )


def create_app(ledger: Optional[Ledger] = None) -> Flask:
    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = 16 * 1024 * 1024
    app.extensions["ledger"] = ledger or Ledger.from_config(_config_from_env())
    _register_routes(app)
    return app


def _ledger() -> Ledger:
    return current_app.extensions["ledger"]


# -------------------------------------------------------
# Helpers
# -------------------------------------------------------

def allowed_file(filename: str) -> bool:
    return "." in filename and filename.rsplit(".", 1)[1].lower() in ALLOWED_EXTENSIONS


def _error(message: str, status: int, **extra: Any) -> Tuple[Dict[str, Any], int]:
    return {"success": False, "error": message, **extra}, status


class UploadError(ValueError):
    """The request did not carry a usable file."""


def _read_upload() -> Tuple[str, bytes, SourceKind]:
    """Pull the uploaded file out of the current request."""
    if "file" not in request.files:
        raise UploadError("No file uploaded")

    file: FileStorage = request.files["file"]
    if not file.filename:
        raise UploadError("No file selected")

    filename = secure_filename(file.filename)
    if not allowed_file(filename):
        raise UploadError(
            f"Invalid file type. Allowed: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )

    return filename, file.read(), SourceKind.from_filename(filename)


def _parse_mapping_field(raw: Optional[str], guessed: ColumnMapping) -> ColumnMapping:
    """Apply the optional JSON ``mapping`` form field on top of the guess."""
    if not raw:
        return guessed
    overrides = json.loads(raw)
    if not isinstance(overrides, dict):
        raise ValueError("mapping must be a JSON object")
    return guessed.with_overrides(**{str(k): str(v or "") for k, v in overrides.items()})


def _parse_day(raw: Optional[str]) -> Optional[date]:
    return date.fromisoformat(raw) if raw else None


# -------------------------------------------------------
# API
# -------------------------------------------------------

def _register_routes(app: Flask) -> None:

    @app.route("/")
    def home():
        return {
            "status": "CashFlow server running",
            "endpoints": [
                "/api/health", "/api/preview", "/api/import", "/api/summary",
                "/api/monthly", "/api/budgets", "/api/datasets",
            ],
        }

    @app.route("/api/health", methods=["GET"])
    def api_health():
        return {"status": "online", "version": "1.0.0"}, 200

    @app.route("/api/preview", methods=["POST"])
    def api_preview():
        try:
            filename, data, kind = _read_upload()
        except UploadError as e:
            return _error(str(e), 400)

        try:
            prepared = _ledger().pipeline.prepare(data, kind)
        except TabularParseError as e:
            return _error(str(e), 422)

        logger.info("Preview of %s: %d record(s)", filename, len(prepared.records))
        return {"success": True, "filename": filename, **prepared.to_dict()}, 200

    @app.route("/api/import", methods=["POST"])
    def api_import():
        try:
            filename, data, kind = _read_upload()
        except UploadError as e:
            return _error(str(e), 400)
        ledger = _ledger()

        try:
            prepared = ledger.pipeline.prepare(data, kind)
            mapping = _parse_mapping_field(request.form.get("mapping"), prepared.guessed_mapping)
            name = request.form.get("name") or Path(filename).stem
            result = ledger.import_prepared(prepared, mapping, name=name)
        except TabularParseError as e:
            return _error(str(e), 422)
        except MappingValidationError as e:
            return _error(str(e), 400, errors=e.errors)
        except ValueError as e:
            return _error(str(e), 400)
        except Exception as e:
            logger.exception("Import failed")
            return _error(str(e), 500)

        return {"dataset": name, **result.to_dict()}, 200

    @app.route("/api/transactions", methods=["GET"])
    def api_transactions():
        return {"transactions": [t.to_dict() for t in _ledger().transactions]}, 200

    @app.route("/api/transactions.csv", methods=["GET"])
    def api_transactions_csv():
        body = Exporter.to_csv_string(_ledger().transactions)
        return Response(body, mimetype="text/csv")

    @app.route("/api/transactions/<int:txn_id>/category", methods=["POST"])
    def api_recategorize(txn_id: int):
        payload = request.get_json(silent=True) or {}
        category = payload.get("category")
        if not category:
            return _error("Missing 'category'", 400)

        try:
            updated = _ledger().recategorize(txn_id, str(category))
        except KeyError:
            return _error(f"Unknown transaction id {txn_id}", 404)
        except ValueError as e:
            return _error(str(e), 400)

        return {"success": True, "transaction": updated.to_dict()}, 200

    @app.route("/api/summary", methods=["GET"])
    def api_summary():
        ledger = _ledger()
        try:
            start = _parse_day(request.args.get("start"))
            end = _parse_day(request.args.get("end"))
        except ValueError as e:
            return _error(str(e), 400)

        month = request.args.get("month")
        if not (month or start or end):
            month = ledger.default_month()
        return ledger.summary(month=month, start=start, end=end), 200

    @app.route("/api/monthly", methods=["GET"])
    def api_monthly():
        ledger = _ledger()
        return {
            "monthly": [m.to_dict() for m in ledger.monthly()],
            "forecast": [f.to_dict() for f in ledger.forecast()],
        }, 200

    @app.route("/api/budgets", methods=["GET", "PUT"])
    def api_budgets():
        ledger = _ledger()
        if request.method == "GET":
            return {"budgets": ledger.get_budgets()}, 200

        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            return _error("Expected a JSON object of {category: amount}", 400)
        try:
            budgets = ledger.set_budgets(payload)
        except (TypeError, ValueError) as e:
            return _error(str(e), 400)
        return {"budgets": budgets}, 200

    @app.route("/api/datasets", methods=["GET"])
    def api_datasets():
        return {
            "datasets": [
                {
                    "name": ds.name,
                    "uploadedAt": ds.uploaded_at.isoformat(),
                    "count": len(ds.transactions),
                }
                for ds in _ledger().list_datasets()
            ],
            "active": _ledger().active_dataset,
        }, 200

    @app.route("/api/datasets/<name>/load", methods=["POST"])
    def api_load_dataset(name: str):
        try:
            ds = _ledger().load_dataset(name)
        except KeyError:
            return _error(f"Unknown dataset {name!r}", 404)
        return {"success": True, "name": ds.name, "count": len(ds.transactions)}, 200

    @app.route("/api/datasets/<name>", methods=["DELETE"])
    def api_delete_dataset(name: str):
        try:
            _ledger().delete_dataset(name)
        except KeyError:
            return _error(f"Unknown dataset {name!r}", 404)
        return {"success": True}, 200


app = create_app()


if __name__ == "__main__":
    print("=" * 60)
    print("CashFlow Server Running")
    print("http://localhost:5000")
    print("=" * 60)

    app.run(host="0.0.0.0", port=5000, debug=True)
