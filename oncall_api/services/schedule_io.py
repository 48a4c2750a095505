# oncall_api/services/schedule_io.py
"""
Schedule import/export.

File layout (both directions): one row per date with columns
``Primary, Backup, Date, Day``. Primary/Backup hold usernames; a blank
cell means the slot is unassigned (export) or left untouched (import).
"""
import csv
import io
import logging
import re
from collections import Counter
from datetime import date, datetime, timedelta

from openpyxl import Workbook, load_workbook
from openpyxl.styles import Font
from sqlalchemy.exc import SQLAlchemyError

from oncall_api.common.dates import daterange
from oncall_api.common.errors import AssignmentRejected, ValidationFailed
from oncall_api.extensions import db
from oncall_api.models.shift import Shift, ROLE_PRIMARY, ROLE_BACKUP
from oncall_api.models.user import User
from oncall_api.services import notification_service as notifications
from oncall_api.services.shift_service import upsert_shift

log = logging.getLogger(__name__)

HEADERS = ["Primary", "Backup", "Date", "Day"]
XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

_EXCEL_EPOCH = date(1899, 12, 30)
_MONTHS = {m: i for i, m in enumerate(
    ["jan", "feb", "mar", "apr", "may", "jun", "jul", "aug", "sep", "oct", "nov", "dec"], start=1)}
_DMY_ABBR = re.compile(r"^(\d{1,2})-([A-Za-z]{3})-(\d{2})$")
_SERIAL = re.compile(r"^\d+(\.\d+)?$")


# ---------- export ----------

def export_rows(start, end):
    if start > end:
        raise ValidationFailed(message="start must be on or before end")
    by_slot = {}
    for s in Shift.query.filter(Shift.date >= start, Shift.date <= end).all():
        by_slot[(s.date, s.on_call_role)] = s.user.username if s.user else ""
    return [
        {
            "Primary": by_slot.get((d, ROLE_PRIMARY), ""),
            "Backup": by_slot.get((d, ROLE_BACKUP), ""),
            "Date": d.isoformat(),
            "Day": d.strftime("%A"),
        }
        for d in daterange(start, end)
    ]


def export_workbook(start, end) -> io.BytesIO:
    wb = Workbook()
    ws = wb.active
    ws.title = "Schedule"
    ws.append(HEADERS)
    for c in ws[1]:
        c.font = Font(bold=True)
    for row in export_rows(start, end):
        ws.append([row[h] for h in HEADERS])
    ws.column_dimensions["A"].width = 18
    ws.column_dimensions["B"].width = 18
    ws.column_dimensions["C"].width = 12
    ws.column_dimensions["D"].width = 12

    bio = io.BytesIO()
    wb.save(bio)
    bio.seek(0)
    return bio


def export_csv(start, end) -> str:
    buf = io.StringIO()
    w = csv.DictWriter(buf, fieldnames=HEADERS, lineterminator="\n")
    w.writeheader()
    w.writerows(export_rows(start, end))
    return buf.getvalue()


# ---------- import: parsing ----------

def _from_serial(n) -> date:
    return _EXCEL_EPOCH + timedelta(days=int(float(n)))


def parse_import_date(value):
    """Best-effort date from a spreadsheet cell; None when unparseable."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, (int, float)):
        return _from_serial(value) if value > 0 else None

    s = str(value).strip()
    if not s:
        return None
    if _SERIAL.match(s):
        return _from_serial(s) if float(s) > 0 else None

    m = _DMY_ABBR.match(s)
    if m:
        day, mon, yy = m.groups()
        month = _MONTHS.get(mon.lower())
        if not month:
            return None
        year = 2000 + int(yy) if int(yy) < 50 else 1900 + int(yy)
        try:
            return date(year, month, int(day))
        except ValueError:
            return None

    if "T" in s:
        s = s.split("T", 1)[0]
    for fmt in ("%Y-%m-%d", "%d-%m-%Y", "%Y/%m/%d", "%d/%m/%Y"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            pass
    return None


def _norm_row(raw: dict) -> dict:
    return {str(k).strip().lower(): v for k, v in (raw or {}).items() if k is not None}


def _cell_text(v):
    if v is None:
        return ""
    return str(v).strip()


def read_rows_xlsx(data: bytes):
    wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    try:
        ws = wb.active
        it = ws.iter_rows(values_only=True)
        header = next(it, None)
        if not header:
            return []
        keys = [_cell_text(h) for h in header]
        rows = []
        for values in it:
            if values is None or all(v in (None, "") for v in values):
                continue
            rows.append({k: v for k, v in zip(keys, values) if k})
        return rows
    finally:
        wb.close()


def read_rows_csv(text: str):
    reader = csv.DictReader(io.StringIO(text))
    return [dict(r) for r in reader if any((v or "").strip() for v in r.values() if isinstance(v, str))]


# ---------- import: apply ----------

def _apply_cells(day, wanted, imported_by, ignore):
    done, rejected = {}, {}
    for role, user in wanted.items():
        try:
            _, outcome = upsert_shift(day, role, user.id, assigned_by=imported_by,
                                      commit=False, notify=False, ignore_shift_ids=ignore)
        except AssignmentRejected as e:
            rejected[role] = e
            continue
        done[role] = outcome
    return done, rejected


def import_rows(rows, mode="commit", imported_by=None) -> dict:
    """
    Apply schedule rows.

    Each row runs inside its own SAVEPOINT so a failing row never undoes
    the rows around it. ``mode="dry"`` runs the same checks and rolls
    everything back at the end.
    """
    mode = (mode or "commit").lower()
    if mode not in ("dry", "commit"):
        raise ValidationFailed(message="mode must be dry or commit")
    if not isinstance(rows, list):
        raise ValidationFailed(message="Invalid data format. Expected array of rows.")

    users = {u.username: u for u in User.query.all()}
    result = {"mode": mode, "processed": 0, "created": 0, "updated": 0, "unchanged": 0,
              "errors": [], "warnings": []}
    new_per_user = Counter()

    for idx, raw in enumerate(rows, start=1):
        result["processed"] += 1
        row = _norm_row(raw) if isinstance(raw, dict) else {}
        raw_date = row.get("date")
        if raw_date in (None, ""):
            result["errors"].append({"row": idx, "error": "Skipping row with missing date"})
            continue
        day = parse_import_date(raw_date)
        if day is None:
            result["errors"].append({"row": idx, "error": f"Invalid date format: {raw_date}"})
            continue

        wanted = {}
        for role, col in ((ROLE_PRIMARY, "primary"), (ROLE_BACKUP, "backup")):
            name = _cell_text(row.get(col))
            if not name:
                continue
            user = users.get(name)
            if user is None:
                result["errors"].append({"row": idx, "date": day.isoformat(), "role": role,
                                         "error": f"User not found: {name}"})
                continue
            wanted[role] = user

        if not wanted:
            continue

        try:
            with db.session.begin_nested():
                current = {s.on_call_role: s for s in Shift.query.filter_by(date=day).all()}
                # slots changing hands in this row; lets a row trade Primary and Backup
                moving = [s.id for r, s in current.items() if r in wanted and s.user_id != wanted[r].id]
                sp = db.session.begin_nested()
                done, rejected = _apply_cells(day, wanted, imported_by, moving)
                if rejected and moving:
                    # partial trade would leave someone on both slots; redo strictly
                    sp.rollback()
                    done, rejected = _apply_cells(day, wanted, imported_by, ())
                else:
                    sp.commit()
        except SQLAlchemyError as e:
            log.warning("import row %s failed: %s", idx, e)
            result["errors"].append({"row": idx, "date": day.isoformat(), "error": "Database error while saving row"})
            continue

        for role, outcome in done.items():
            result[outcome] += 1
            if outcome != "unchanged":
                new_per_user[wanted[role].id] += 1
        for role, e in rejected.items():
            result["warnings"].append({"row": idx, "date": day.isoformat(), "role": role,
                                       "username": wanted[role].username, "reason": e.code,
                                       "message": e.message})

    if mode == "dry":
        db.session.rollback()
    else:
        for user_id, n in new_per_user.items():
            notifications.import_summary(user_id, n)
        db.session.commit()

    log.info("schedule import (%s): %s rows, %s created, %s updated, %s errors, %s warnings",
             mode, result["processed"], result["created"], result["updated"],
             len(result["errors"]), len(result["warnings"]))
    return result
