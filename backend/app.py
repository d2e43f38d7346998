"""
Flask API for the PIT Audit engine
Serves payroll assessments, remittance accruals and saved audit summaries
"""

from flask import Flask, jsonify, request
from flask_cors import CORS
import pandas as pd

from config import setup_logging, get_logger
from calculator_common import to_records
from validators import (
    InvalidInput,
    validate_params,
    required_float,
    PERIOD,
    EMPLOYER_CLASS,
    PENALTY_POLICY,
    RELIEF_REGIME,
)

setup_logging()
logger = get_logger(__name__)

app = Flask(__name__)
app.config["AUDIT_DB_PATH"] = None  # None means config.AUDIT_DB_PATH
CORS(app)  # Enable CORS for the dashboard frontend


# ─── Global Error Handlers ───────────────────────────────────────────────────


@app.errorhandler(404)
def not_found(e):
    """Return JSON instead of HTML for 404 errors."""
    return jsonify({"error": "Resource not found"}), 404


@app.errorhandler(ValueError)
def handle_value_error(e):
    """Catch ValueErrors (InvalidInput included) and return a 400 JSON response."""
    logger.warning("ValueError: %s", e)
    return jsonify({"error": str(e)}), 400


@app.errorhandler(Exception)
def handle_exception(e):
    """Catch-all for unhandled exceptions, returned as a 500 JSON response."""
    logger.exception("Unhandled exception: %s", e)
    return jsonify({"error": "Internal server error"}), 500


def _json_body() -> dict:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


@app.route("/api/health", methods=["GET"])
def health():
    """Health check endpoint"""
    return jsonify({"status": "ok", "message": "PIT Audit API is running"})


# ─── Payroll Assessment ──────────────────────────────────────────────────────


@app.route("/api/assess", methods=["POST"])
def assess():
    """
    Assess a payroll table.

    JSON body:
      - rows: list of row objects (required)
      - earnings_columns: columns summed into gross earnings (required)
      - basic_column: basic salary column (default: basic_salary)
      - period: "yearly" or "monthly" (default: yearly)
      - relief_regime: "consolidated" or "rent" (default: consolidated)
      - rent_column: annual rent column for the rent regime (default: rent_paid)
      - include_total: append the Total row (default: true)
    """
    from payroll_assessment import assess_payroll

    body = _json_body()
    rows = body.get("rows")
    earnings_columns = body.get("earnings_columns")
    if not isinstance(rows, list) or not rows:
        return jsonify({"error": "'rows' must be a non-empty list"}), 400
    if not isinstance(earnings_columns, list) or not earnings_columns:
        return jsonify({"error": "'earnings_columns' must be a non-empty list"}), 400

    params, error = validate_params(body, [PERIOD, RELIEF_REGIME])
    if error:
        return error

    include_total = body.get("include_total", True)
    if not isinstance(include_total, bool):
        return jsonify({"error": "'include_total' must be true or false"}), 400

    result = assess_payroll(
        pd.DataFrame(rows),
        earnings_columns,
        basic_column=body.get("basic_column", "basic_salary"),
        period=params["period"],
        relief_regime=params["relief_regime"],
        rent_column=body.get("rent_column", "rent_paid"),
        include_total=include_total,
    )
    records = to_records(result)
    return jsonify({"count": len(rows), "rows": records})


@app.route("/api/tax-liability", methods=["GET"])
def get_tax_liability():
    """
    PIT on a taxable income, with the per-band breakdown.

    Query params:
      - taxable_income: amount (required)
      - period: "yearly" or "monthly" (default: yearly)
    """
    from tax_data import tax_liability, bracket_breakdown

    params, error = validate_params(request.args, [required_float("taxable_income"), PERIOD])
    if error:
        return error
    if params["taxable_income"] is None:
        return jsonify({"error": "'taxable_income' is required"}), 400

    income = params["taxable_income"]
    return jsonify(
        {
            "taxable_income": income,
            "period": params["period"],
            "tax_liability": tax_liability(income, params["period"]),
            "bands": bracket_breakdown(income, params["period"]),
        }
    )


@app.route("/api/consolidated-relief", methods=["GET"])
def get_consolidated_relief():
    """
    Consolidated relief allowance on a gross income.

    Query params:
      - gross_income: amount (required)
      - period: "yearly" or "monthly" (default: yearly)
    """
    from relief import consolidated_relief

    params, error = validate_params(request.args, [required_float("gross_income"), PERIOD])
    if error:
        return error
    if params["gross_income"] is None:
        return jsonify({"error": "'gross_income' is required"}), 400

    return jsonify(
        {
            "gross_income": params["gross_income"],
            "period": params["period"],
            "consolidated_relief": consolidated_relief(params["gross_income"], params["period"]),
        }
    )


# ─── Remittance ──────────────────────────────────────────────────────────────


@app.route("/api/remittance", methods=["GET"])
def get_remittance():
    """
    Interest and penalty on a late remittance.

    Query params:
      - unpaid_tax: amount (required)
      - due_date, payment_date: YYYY-MM-DD (required)
      - penalty_policy: "fixed" or "proportional" (required)
      - employer_class: "individual" or "corporate" (default: corporate)
    """
    from remittance import penalty_and_interest

    params, error = validate_params(
        request.args, [required_float("unpaid_tax"), EMPLOYER_CLASS, PENALTY_POLICY]
    )
    if error:
        return error

    missing = [
        name
        for name in ("unpaid_tax", "due_date", "payment_date", "penalty_policy")
        if params.get(name) is None and not request.args.get(name)
    ]
    if missing:
        return jsonify({"error": f"Missing required parameters: {', '.join(missing)}"}), 400

    result = penalty_and_interest(
        params["unpaid_tax"],
        request.args["due_date"],
        request.args["payment_date"],
        params["penalty_policy"],
        employer_class=params["employer_class"],
    )
    return jsonify(result.as_dict())


@app.route("/api/outstanding-liability", methods=["POST"])
def post_outstanding_liability():
    """
    Balance left after a payment.

    JSON body: {"actual_liability": number | [numbers], "payment_made": number | [numbers]}
    """
    from remittance import outstanding_liability

    body = _json_body()
    if "actual_liability" not in body or "payment_made" not in body:
        return jsonify({"error": "'actual_liability' and 'payment_made' are required"}), 400

    balance = outstanding_liability(body["actual_liability"], body["payment_made"])
    if hasattr(balance, "tolist"):
        balance = balance.tolist()
    return jsonify({"outstanding_liability": balance})


# ─── Withholding Tax ─────────────────────────────────────────────────────────


@app.route("/api/wht-rate/<transaction_type>", methods=["GET"])
def get_wht_rate(transaction_type):
    """WHT rate for a transaction type (404 when the type is unknown)."""
    from validators import UnknownTransactionType
    from withholding import wht_rate_lookup

    try:
        rate = wht_rate_lookup(transaction_type)
    except UnknownTransactionType as e:
        return jsonify({"error": str(e)}), 404

    return jsonify({"transaction_type": transaction_type, "rate": rate})


# ─── Audit Store ─────────────────────────────────────────────────────────────


@app.route("/api/audits/<period>", methods=["POST"])
def post_audit(period):
    """
    Save an audit result table for a period.

    JSON body: {"rows": [{"category": "Tax Computed", ..., "value": 1000.0}, ...]}
    The first key of each row is the category, the last key is the value.
    """
    from database import save_audit

    body = _json_body()
    rows = body.get("rows")
    if not isinstance(rows, list) or not rows:
        return jsonify({"error": "'rows' must be a non-empty list"}), 400

    container = save_audit(pd.DataFrame(rows), period, db_path=app.config["AUDIT_DB_PATH"])
    return jsonify({"saved": container, "items": len(rows)}), 201


@app.route("/api/audits/summary", methods=["GET"])
def get_audit_summary():
    """
    Category-by-period summary across saved audits.

    Query params:
      - category: repeatable; defaults to the standard audit categories
    """
    from database import generate_audit_summary

    categories = request.args.getlist("category") or None
    summary = generate_audit_summary(categories, db_path=app.config["AUDIT_DB_PATH"])

    return jsonify(
        {
            "periods": list(summary.columns),
            "rows": to_records(summary),
        }
    )


if __name__ == "__main__":
    print("🚀 Starting PIT Audit API...")
    print("📍 API will be available at: http://localhost:5000")
    print("\n📚 Endpoints:")
    print("   GET  /api/health")
    print("   POST /api/assess")
    print("   GET  /api/tax-liability?taxable_income=<amount>&period=yearly")
    print("   GET  /api/consolidated-relief?gross_income=<amount>&period=monthly")
    print("   GET  /api/remittance?unpaid_tax=<amount>&due_date=<date>&payment_date=<date>"
          "&penalty_policy=fixed")
    print("   POST /api/outstanding-liability")
    print("   GET  /api/wht-rate/<transaction_type>")
    print("   POST /api/audits/<period>")
    print("   GET  /api/audits/summary")
    print("\n🔗 Test it: http://localhost:5000/api/tax-liability?taxable_income=381600\n")

    app.run(debug=True, host="0.0.0.0", port=5000)
