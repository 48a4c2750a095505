from flask import Blueprint, Response, request, send_file
from flask_jwt_extended import jwt_required

from oncall_api.common.auth import requires_roles, current_user
from oncall_api.common.dates import require_date
from oncall_api.common.errors import ValidationFailed
from oncall_api.common.http import ok
from oncall_api.models.user import ROLE_MANAGER
from oncall_api.services import schedule_io

bp = Blueprint("schedule", __name__, url_prefix="/api/v1/schedule")


@bp.get("/export")
@jwt_required()
def export():
    """
    GET /api/v1/schedule/export?start=YYYY-MM-DD&end=YYYY-MM-DD&format=xlsx|csv|json
    """
    start = require_date(request.args.get("start"), "start")
    end = require_date(request.args.get("end"), "end")
    fmt = (request.args.get("format") or "xlsx").lower()
    name = f"oncall_schedule_{start.isoformat()}_{end.isoformat()}"

    if fmt == "json":
        return ok(schedule_io.export_rows(start, end))
    if fmt == "csv":
        body = schedule_io.export_csv(start, end)
        return Response(body, mimetype="text/csv",
                        headers={"Content-Disposition": f"attachment; filename={name}.csv"})
    if fmt == "xlsx":
        bio = schedule_io.export_workbook(start, end)
        return send_file(bio, mimetype=schedule_io.XLSX_MIMETYPE, as_attachment=True,
                         download_name=f"{name}.xlsx")
    raise ValidationFailed(message="format must be xlsx, csv or json")


def _rows_from_request():
    """
    multipart/form-data with a 'file' field (.xlsx or .csv), or JSON {"rows": [...]}.
    Returns (rows, source).
    """
    ctype = request.content_type or ""
    if "multipart/form-data" in ctype:
        f = request.files.get("file")
        if not f:
            raise ValidationFailed(message="file is required")
        data = f.read()
        filename = (f.filename or "").lower()
        if filename.endswith(".xlsx"):
            return schedule_io.read_rows_xlsx(data), "xlsx"
        if filename.endswith(".csv"):
            return schedule_io.read_rows_csv(data.decode("utf-8-sig", errors="ignore")), "csv"
        raise ValidationFailed(message="Only .xlsx and .csv files are supported")

    body = request.get_json(silent=True) or {}
    rows = body.get("rows") if isinstance(body, dict) else None
    if not isinstance(rows, list):
        raise ValidationFailed(message="Invalid data format. Expected JSON {rows: [...]}.")
    return rows, "json"


@bp.post("/import")
@requires_roles(ROLE_MANAGER)
def import_schedule():
    """
    POST /api/v1/schedule/import?mode=dry|commit

    Columns: Primary, Backup, Date, Day (Day is informational).
    Usernames that do not resolve and bad dates land in ``errors``;
    double-booking or leave conflicts land in ``warnings``.
    """
    mode = (request.args.get("mode") or "commit").lower()
    rows, source = _rows_from_request()
    if not rows:
        raise ValidationFailed(message="No rows found. Upload a file with a header row or send JSON {rows:[...]}.")
    u = current_user()
    result = schedule_io.import_rows(rows, mode=mode, imported_by=u.full_name if u else None)
    result["source"] = source
    return ok(result)
