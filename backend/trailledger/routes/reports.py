from datetime import date

from flask import Blueprint, Response, jsonify, request

from ..services import reporting_service
from ..time_utils import day_bounds, parse_iso_datetime, utcnow
from ..validation import ValidationError


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


def _parse_day(raw: str | None) -> date:
    if not raw:
        return utcnow().date()
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        raise ValidationError("date must be YYYY-MM-DD")


@reports_bp.get("/daily")
def daily_report():
    try:
        day = _parse_day(request.args.get("date"))
        report = reporting_service.daily_report(day)
        return jsonify(report), 200
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400


@reports_bp.get("/rentals.csv")
def rentals_csv():
    """
    CSV export of rentals started on ?date=YYYY-MM-DD, or within
    ?start=...&end=... (ISO-8601).
    """
    try:
        start_raw = request.args.get("start")
        end_raw = request.args.get("end")
        if start_raw or end_raw:
            try:
                start = parse_iso_datetime(start_raw)
                end = parse_iso_datetime(end_raw)
            except ValueError:
                raise ValidationError("start and end must be ISO-8601 datetimes")
            label = f"{start_raw}_{end_raw}"
        else:
            day = _parse_day(request.args.get("date"))
            start, end = day_bounds(day)
            label = day.isoformat()
        rentals = reporting_service.list_by_date_range(start, end)
    except ValidationError as exc:
        return jsonify({"error": str(exc)}), 400

    body = reporting_service.rentals_to_csv(rentals)
    return Response(
        body,
        mimetype="text/csv",
        headers={"Content-Disposition": f'attachment; filename="trailledger-rentals-{label}.csv"'},
    )
