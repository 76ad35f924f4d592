"""Validación de fecha/hora del pedido contra los horarios del local.

Formato de horarios (documento `store_hours:<tenant>`):
    {"monday": [{"from": "11:00", "to": "15:00"}, {"from": "19:00", "to": "23:00"}], ...}
Un día ausente está cerrado. Los límites de cada franja son inclusivos.
"""
from __future__ import annotations
from datetime import date, datetime, time
from typing import Any
from zoneinfo import ZoneInfo
from kink import di
from ...core.settings import Settings
from ...core.logging import get_logger
from ..models import DATE_RE, TIME_RE, Order, ScheduleCheck

log = get_logger()

WEEKDAYS = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
DIAS = {
    "monday": "lunes", "tuesday": "martes", "wednesday": "miércoles", "thursday": "jueves",
    "friday": "viernes", "saturday": "sábado", "sunday": "domingo",
}
MAX_RANGES_PER_DAY = 2


def normalize_hours_payload(raw: Any) -> dict[str, list[dict[str, str]]]:
    """Limpia lo que llega del panel: acepta {from,to} o {desde,hasta}, descarta franjas inválidas."""
    out: dict[str, list[dict[str, str]]] = {}
    if not isinstance(raw, dict):
        return out
    for day in WEEKDAYS:
        ranges = raw.get(day)
        if not isinstance(ranges, list):
            continue
        norm: list[dict[str, str]] = []
        for r in ranges:
            if not isinstance(r, dict):
                continue
            start = str(r.get("from", r.get("desde")) or "").strip()
            end = str(r.get("to", r.get("hasta")) or "").strip()
            if not (TIME_RE.match(start) and TIME_RE.match(end)) or start >= end:
                continue
            norm.append({"from": start, "to": end})
            if len(norm) >= MAX_RANGES_PER_DAY:
                break
        if norm:
            out[day] = norm
    return out


def _ranges_label(ranges: list[dict[str, str]]) -> str:
    return " y ".join(f"de {r['from']} a {r['to']}" for r in ranges)


def format_hours(hours: dict[str, list[dict[str, str]]]) -> str:
    """Una línea por día abierto, en orden de semana. Se usa en mensajes y en el prompt."""
    return "\n".join(f"- {DIAS[d]}: {_ranges_label(hours[d])}" for d in WEEKDAYS if hours.get(d))


class ScheduleValidator:
    def __init__(self, settings: Settings | None = None):
        self.settings = settings if settings is not None else di[Settings]

    def _weekday(self, day: date, at: time) -> str:
        local = datetime.combine(day, at, tzinfo=ZoneInfo(self.settings.store_tz))
        return WEEKDAYS[local.weekday()]

    def validate(self, order: Order, hours: dict[str, list[dict[str, str]]] | None) -> ScheduleCheck:
        """Sin fecha u hora bien formadas no hay nada que validar; ante un error interno, deja pasar."""
        d, t = order.scheduled_date, order.scheduled_time
        if not d or not t or not DATE_RE.match(d) or not TIME_RE.match(t):
            return ScheduleCheck(ok=True)
        if not hours:
            return ScheduleCheck(ok=True)
        try:
            day = self._weekday(date.fromisoformat(d), time.fromisoformat(t))
            ranges = hours.get(day) or []
            if not ranges:
                msg = (f"El {DIAS[day]} no tomamos pedidos. Estos son nuestros días y horarios:\n"
                       f"{format_hours(hours)}\n¿Qué otro día te queda bien?")
                return ScheduleCheck(ok=False, reason="day_closed", message=msg)
            if any(r["from"] <= t <= r["to"] for r in ranges):
                return ScheduleCheck(ok=True)
            msg = (f"El {DIAS[day]} tomamos pedidos {_ranges_label(ranges)}. "
                   f"¿Qué horario te queda bien dentro de esas franjas?")
            return ScheduleCheck(ok=False, reason="time_outside_ranges", message=msg)
        except Exception:
            log.exception("schedule_check_failed", date=d, time=t)
            return ScheduleCheck(ok=True)
