"""Modelos de dominio: pedido autoritativo, propuesta del LLM, catálogo y resultados.

El LLM habla un JSON con claves en español (`Pedido`, `Entrega`, `items[].descripcion`...).
Esas claves entran por alias; adentro del servicio todo es tipado y en inglés.
"""
from __future__ import annotations
import re
from decimal import Decimal
from enum import Enum
from typing import Any
from pydantic import BaseModel, ConfigDict, Field, AliasChoices, computed_field, field_validator, model_validator
from .numbers import coerce_number, to_json_number

DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
TIME_RE = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")
_LOOSE_TIME_RE = re.compile(r"^\d{1,2}:\d{2}$")


class DeliveryMode(str, Enum):
    PICKUP = "pickup"
    DELIVERY = "delivery"
    UNSET = "unset"

    @classmethod
    def parse(cls, raw: Any) -> "DeliveryMode":
        if isinstance(raw, cls):
            return raw
        v = str(raw or "").strip().lower()
        if v in ("domicilio", "delivery", "envio", "envío", "a domicilio"):
            return cls.DELIVERY
        if v in ("retiro", "pickup", "retira", "retiro en local", "take away"):
            return cls.PICKUP
        return cls.UNSET


class ConversationStatus(str, Enum):
    OPEN = "OPEN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (ConversationStatus.COMPLETED, ConversationStatus.CANCELLED)

    @classmethod
    def parse(cls, raw: Any) -> "ConversationStatus | None":
        v = str(raw or "").strip().upper()
        try:
            return cls(v)
        except ValueError:
            return None


class Intent(str, Enum):
    CONFIRM = "confirm"
    CANCEL = "cancel"
    NEITHER = "neither"


def _as_text(v: Any) -> str:
    return "" if v is None else str(v).strip()


# ---------- Pedido autoritativo ----------

class DeliveryAddress(BaseModel):
    """Domicilio libre o estructurado (direccion / calle+numero / barrio / ciudad...)."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    text: str = Field(default="", validation_alias=AliasChoices("direccion", "text"))
    street: str = Field(default="", validation_alias=AliasChoices("calle", "street"))
    number: str = Field(default="", validation_alias=AliasChoices("numero", "number"))
    neighborhood: str = Field(default="", validation_alias=AliasChoices("barrio", "neighborhood"))
    city: str = Field(default="", validation_alias=AliasChoices("ciudad", "localidad", "city"))
    province: str = Field(default="", validation_alias=AliasChoices("provincia", "province"))
    postal_code: str = Field(default="", validation_alias=AliasChoices("cp", "postal_code"))
    lat: float | None = None
    lon: float | None = None

    @model_validator(mode="before")
    @classmethod
    def _from_plain_string(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"text": data}
        return data

    @field_validator("text", "street", "number", "neighborhood", "city", "province", "postal_code", mode="before")
    @classmethod
    def _strip(cls, v: Any) -> str:
        return _as_text(v)

    def is_empty(self) -> bool:
        return not any([self.text, self.street, self.number, self.neighborhood, self.city, self.province, self.postal_code])

    def clear_location(self) -> None:
        self.lat = None
        self.lon = None

    def to_wire(self) -> dict:
        out = {
            "direccion": self.text, "calle": self.street, "numero": self.number,
            "barrio": self.neighborhood, "ciudad": self.city, "provincia": self.province, "cp": self.postal_code,
        }
        out = {k: v for k, v in out.items() if v}
        if self.lat is not None and self.lon is not None:
            out["lat"], out["lon"] = self.lat, self.lon
        return out


class OrderLine(BaseModel):
    id: str | int | None = None
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal

    def to_wire(self) -> dict:
        return {
            "id": self.id if self.id is not None else 0,
            "descripcion": self.description,
            "cantidad": to_json_number(self.quantity),
            "importe_unitario": to_json_number(self.unit_price),
            "total": to_json_number(self.line_total),
        }


class Order(BaseModel):
    """Pedido autoritativo. Los totales siempre salen de recalcular, nunca del modelo."""
    mode: DeliveryMode = DeliveryMode.UNSET
    address: DeliveryAddress | None = None
    items: list[OrderLine] = Field(default_factory=list)
    delivery_line: OrderLine | None = None
    scheduled_date: str | None = None
    scheduled_time: str | None = None
    distance_km: float | None = None

    @computed_field
    @property
    def grand_total(self) -> Decimal:
        total = sum((i.line_total for i in self.items), Decimal(0))
        if self.delivery_line is not None:
            total += self.delivery_line.line_total
        return total

    def all_lines(self) -> list[OrderLine]:
        return self.items + ([self.delivery_line] if self.delivery_line else [])

    def has_address(self) -> bool:
        return self.address is not None and not self.address.is_empty()

    def to_wire(self) -> dict:
        """Snapshot en el formato del contrato JSON del modelo."""
        return {
            "Entrega": {"delivery": "domicilio", "pickup": "retiro"}.get(self.mode.value, ""),
            "Domicilio": self.address.to_wire() if self.address else {},
            "items": [line.to_wire() for line in self.all_lines()],
            "total_pedido": to_json_number(self.grand_total),
            "Fecha": self.scheduled_date or "",
            "Hora": self.scheduled_time or "",
            "distancia_km": self.distance_km,
        }


# ---------- Propuesta del LLM ----------

class ProposedItem(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str | int | None = None
    description: str = Field(default="", validation_alias=AliasChoices("descripcion", "description"))
    quantity: Any = Field(default=None, validation_alias=AliasChoices("cantidad", "quantity"))
    unit_price: Any = Field(default=None, validation_alias=AliasChoices("importe_unitario", "unit_price"))
    line_total: Any = Field(default=None, validation_alias=AliasChoices("total", "line_total"))

    @field_validator("description", mode="before")
    @classmethod
    def _desc(cls, v: Any) -> str:
        return _as_text(v)

    @classmethod
    def from_line(cls, line: OrderLine) -> "ProposedItem":
        return cls(id=line.id, description=line.description, quantity=line.quantity,
                   unit_price=line.unit_price, line_total=line.line_total)


class ProposedOrder(BaseModel):
    """Lo que el modelo *dice* del pedido. Son propuestas: se reconcilian campo a campo."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    mode: DeliveryMode = Field(default=DeliveryMode.UNSET, validation_alias=AliasChoices("Entrega", "entrega", "mode"))
    address: DeliveryAddress | None = Field(default=None, validation_alias=AliasChoices("Domicilio", "domicilio", "address"))
    items: list[ProposedItem] | None = None
    declared_total: Any = Field(default=None, validation_alias=AliasChoices("total_pedido", "declared_total"))
    scheduled_date: str | None = Field(default=None, validation_alias=AliasChoices("Fecha", "fecha_pedido", "fecha", "scheduled_date"))
    scheduled_time: str | None = Field(default=None, validation_alias=AliasChoices("Hora", "hora_pedido", "hora", "scheduled_time"))

    @model_validator(mode="before")
    @classmethod
    def _time_in_entrega(cls, data: Any) -> Any:
        # El modelo a veces escribe la hora en "Entrega" ("21:30").
        if isinstance(data, dict):
            key = "Entrega" if "Entrega" in data else ("entrega" if "entrega" in data else None)
            raw = data.get(key) if key else None
            if isinstance(raw, str) and _LOOSE_TIME_RE.match(raw.strip()):
                data = dict(data)
                hhmm = raw.strip().zfill(5)
                if not (data.get("Hora") or data.get("hora_pedido")):
                    data["Hora"] = hhmm
                data[key] = ""
        return data

    @field_validator("mode", mode="before")
    @classmethod
    def _mode(cls, v: Any) -> DeliveryMode:
        return DeliveryMode.parse(v)

    @field_validator("address", mode="before")
    @classmethod
    def _address(cls, v: Any) -> Any:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return v

    @field_validator("scheduled_date", "scheduled_time", mode="before")
    @classmethod
    def _when(cls, v: Any) -> str | None:
        s = _as_text(v)
        return s or None

    @field_validator("items", mode="before")
    @classmethod
    def _items(cls, v: Any) -> Any:
        if v is None:
            return None
        if not isinstance(v, list):
            return []
        return [i for i in v if isinstance(i, (dict, ProposedItem))]

    def has_valid_date(self) -> bool:
        return bool(self.scheduled_date and DATE_RE.match(self.scheduled_date))

    def has_valid_time(self) -> bool:
        return bool(self.scheduled_time and TIME_RE.match(self.scheduled_time))

    def merged_onto(self, current: Order) -> "ProposedOrder":
        """Completa los campos que el modelo no informó con el pedido autoritativo vigente.

        Reglas:
        - Entrega: si viene vacía/desconocida, se mantiene la vigente.
        - Domicilio: si viene vacío, se mantiene el vigente (con lat/lon).
        - items: si no vinieron, se toman los vigentes junto con su total.
        - Fecha/Hora: sólo reemplazan si vienen bien formadas.
        """
        merged = self.model_copy(deep=True)
        if merged.mode is DeliveryMode.UNSET:
            merged.mode = current.mode
        if merged.address is None or merged.address.is_empty():
            merged.address = current.address.model_copy() if current.address else None
        if merged.items is None:
            merged.items = [ProposedItem.from_line(line) for line in current.all_lines()]
            if merged.declared_total is None:
                merged.declared_total = current.grand_total
        if not merged.has_valid_date() and current.scheduled_date:
            merged.scheduled_date = current.scheduled_date
        if not merged.has_valid_time() and current.scheduled_time:
            merged.scheduled_time = current.scheduled_time
        return merged


class LLMReply(BaseModel):
    """Respuesta estructurada del modelo: texto, estado y Pedido."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    response: str = ""
    estado: ConversationStatus | None = None
    order: ProposedOrder | None = Field(default=None, validation_alias=AliasChoices("Pedido", "pedido", "order"))
    error: str | None = None

    @field_validator("response", mode="before")
    @classmethod
    def _resp(cls, v: Any) -> str:
        return v.strip() if isinstance(v, str) else ""

    @field_validator("estado", mode="before")
    @classmethod
    def _estado(cls, v: Any) -> ConversationStatus | None:
        return ConversationStatus.parse(v)

    @field_validator("order", mode="before")
    @classmethod
    def _order(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else None

    @field_validator("error", mode="before")
    @classmethod
    def _error(cls, v: Any) -> str | None:
        return v.strip() or None if isinstance(v, str) else None


# ---------- Catálogo y geocoding ----------

class CatalogEntry(BaseModel):
    id: str | int | None = None
    description: str
    unit_price: Decimal = Decimal(0)
    active: bool = True
    min_km: float | None = None
    max_km: float | None = None
    notes: str = ""

    @field_validator("unit_price", mode="before")
    @classmethod
    def _price(cls, v: Any) -> Decimal:
        return coerce_number(v)


class DeliveryTier(BaseModel):
    id: str | int | None = None
    description: str
    unit_price: Decimal
    min_km: float
    max_km: float  # float("inf") para el tramo abierto


class GeocodeResult(BaseModel):
    lat: float
    lon: float
    exact: bool
    formatted_address: str = ""


class DeliveryStatus(str, Enum):
    NOT_APPLICABLE = "not_applicable"
    RESOLVED = "resolved"
    NO_ADDRESS = "no_address"
    INEXACT = "inexact"
    UNAVAILABLE = "unavailable"
    NO_TIERS = "no_tiers"


class DeliveryResolution(BaseModel):
    status: DeliveryStatus
    line: OrderLine | None = None
    distance_km: float | None = None
    lat: float | None = None
    lon: float | None = None
    query: str = ""

    @property
    def needs_clarification(self) -> bool:
        return self.status is DeliveryStatus.INEXACT


# ---------- Resultados ----------

class ReconcileResult(BaseModel):
    order: Order
    mismatch: bool
    has_items: bool
    delivery: DeliveryResolution = Field(default_factory=lambda: DeliveryResolution(status=DeliveryStatus.NOT_APPLICABLE))
    missing_prices: list[str] = Field(default_factory=list)

    @property
    def needs_repair(self) -> bool:
        return self.mismatch and self.has_items


class RepairResult(BaseModel):
    success: bool
    attempts: int
    final_order: Order
    reply_text: str
    estado: ConversationStatus | None = None
    delivery: DeliveryResolution | None = None


class ScheduleCheck(BaseModel):
    ok: bool
    reason: str | None = None
    message: str | None = None


class ConversationView(BaseModel):
    """Vista desacoplada de la fila `conversations`."""
    id: int
    tenant_id: str
    customer_id: str
    status: ConversationStatus
    finalized: bool = False
    manual_override: bool = False
