"""
===============================================================================
TARJETA CRC — domain/entities.py
===============================================================================

Módulo:
    Entidades del Dominio (Event, Reward, RewardClaim, UserEvent)

Responsabilidades:
    - Definir estructuras centrales del negocio (sin infraestructura).
    - Mantener invariantes locales: validación de eventos, máquina de estados
      de Event y de RewardClaim, inmutabilidad de UserEvent.
    - Normalizar fechas a datetimes UTC “aware” en construcción.

Colaboradores:
    - domain.repositories: persisten/recuperan estas entidades.
    - domain.errors: ValidationError / InvalidStatusTransitionError.
    - application/*: construyen/consumen estas entidades.

Principios:
    - Sin dependencias a DB/Redis.
    - Datos + comportamiento mínimo (predicados y transiciones viven acá).
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional
from uuid import uuid4

from .errors import InvalidStatusTransitionError, ValidationError


def utcnow() -> datetime:
    """Fecha/hora UTC (reloj por defecto de todos los componentes)."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


def ensure_utc(value: datetime | str | None, *, field_name: str = "date") -> datetime | None:
    """
    Normaliza un instante a datetime UTC aware.

    - str ISO-8601 => datetime (sufijo "Z" aceptado)
    - naive => se asume UTC
    - None => None
    """
    if value is None:
        return None
    if isinstance(value, str):
        raw = value.strip()
        if raw.endswith("Z"):
            raw = raw[:-1] + "+00:00"
        try:
            value = datetime.fromisoformat(raw)
        except ValueError as exc:
            raise ValidationError(
                f"{field_name} must be an ISO-8601 datetime",
                details={"field": field_name, "value": value},
            ) from exc
    if not isinstance(value, datetime):
        raise ValidationError(
            f"{field_name} must be a datetime", details={"field": field_name}
        )
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_enum(enum_cls: type[Enum], value: Any, *, field_name: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationError(
            f"Unsupported {field_name}: {value}",
            details={
                "field": field_name,
                "value": value,
                "supported": [member.value for member in enum_cls],
            },
        ) from exc


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class EventStatus(str, Enum):
    INACTIVE = "inactive"
    ACTIVE = "active"
    EXPIRED = "expired"


class ConditionType(str, Enum):
    LOGIN = "login"
    CUSTOM = "custom"


class ClaimStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    COMPLETED = "completed"


class RewardType(str, Enum):
    POINT = "point"
    ITEM = "item"
    COUPON = "coupon"
    EXPERIENCE = "experience"


# R: Tabla de transiciones de Event (self-transitions no permitidas).
EVENT_STATUS_TRANSITIONS: Dict[EventStatus, frozenset[EventStatus]] = {
    EventStatus.INACTIVE: frozenset({EventStatus.ACTIVE, EventStatus.EXPIRED}),
    EventStatus.ACTIVE: frozenset({EventStatus.INACTIVE, EventStatus.EXPIRED}),
    EventStatus.EXPIRED: frozenset({EventStatus.INACTIVE}),
}

# R: Aliases camelCase aceptados en condition_params (payloads externos).
_CONDITION_PARAM_ALIASES = {
    "requiredCount": "required_count",
    "eventCode": "event_code",
}


def normalize_condition_params(params: Dict[str, Any] | None) -> Dict[str, Any]:
    """Copia params reemplazando aliases camelCase por su clave canónica."""
    out: Dict[str, Any] = {}
    for key, value in (params or {}).items():
        out[_CONDITION_PARAM_ALIASES.get(key, key)] = value
    return out


# ---------------------------------------------------------------------------
# Event
# ---------------------------------------------------------------------------
@dataclass
class Event:
    """
    Campaña acotada en el tiempo con una regla de elegibilidad.

    Validez (siempre recalculada, nunca cacheada):
      valid(now) ⇔ status == ACTIVE ∧ start_date ≤ now ≤ end_date
    """

    id: str
    name: str
    description: str
    condition_type: ConditionType
    condition_params: Dict[str, Any]
    start_date: datetime
    end_date: datetime
    status: EventStatus = EventStatus.INACTIVE
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.condition_type = parse_enum(
            ConditionType, self.condition_type, field_name="condition type"
        )
        self.status = parse_enum(EventStatus, self.status, field_name="event status")
        self.condition_params = normalize_condition_params(self.condition_params)
        self.metadata = dict(self.metadata or {})
        self.start_date = ensure_utc(self.start_date, field_name="start_date")
        self.end_date = ensure_utc(self.end_date, field_name="end_date")
        self.created_at = ensure_utc(self.created_at, field_name="created_at")
        self.updated_at = ensure_utc(self.updated_at, field_name="updated_at")

    @classmethod
    def create(
        cls,
        *,
        name: str,
        description: str,
        condition_type: ConditionType | str,
        condition_params: Dict[str, Any] | None,
        start_date: datetime | str,
        end_date: datetime | str,
        metadata: Dict[str, Any] | None = None,
        event_id: str | None = None,
        now: datetime | None = None,
    ) -> "Event":
        """Construye un Event nuevo (INACTIVE) y valida sus invariantes."""
        if not start_date or not end_date:
            raise ValidationError("Start date and end date are required")
        created = now or utcnow()
        event = cls(
            id=event_id or new_id(),
            name=name,
            description=description,
            condition_type=condition_type,
            condition_params=condition_params or {},
            start_date=start_date,
            end_date=end_date,
            status=EventStatus.INACTIVE,
            metadata=metadata or {},
            created_at=created,
            updated_at=created,
        )
        event.validate()
        return event

    def validate(self) -> None:
        """Lanza ValidationError si algún invariante de construcción no se cumple."""
        if not (self.name or "").strip():
            raise ValidationError("Event name is required", details={"field": "name"})
        if not (self.description or "").strip():
            raise ValidationError(
                "Event description is required", details={"field": "description"}
            )
        if self.start_date is None or self.end_date is None:
            raise ValidationError("Start date and end date are required")
        if self.start_date > self.end_date:
            raise ValidationError(
                "End date must be after start date",
                details={
                    "start_date": self.start_date.isoformat(),
                    "end_date": self.end_date.isoformat(),
                },
            )

        if self.condition_type is ConditionType.LOGIN:
            required = self.condition_params.get("required_count")
            if isinstance(required, bool) or not isinstance(required, int) or required < 1:
                raise ValidationError(
                    "Login condition requires required_count (integer >= 1)",
                    details={"field": "condition_params.required_count"},
                )
        elif self.condition_type is ConditionType.CUSTOM:
            code = self.condition_params.get("event_code")
            if not isinstance(code, str) or not code.strip():
                raise ValidationError(
                    "Custom condition requires event_code",
                    details={"field": "condition_params.event_code"},
                )

    # -------------------------
    # Predicados de validez
    # -------------------------
    def is_active(self) -> bool:
        return self.status is EventStatus.ACTIVE

    def is_within_period(self, now: datetime | None = None) -> bool:
        """Inclusivo en ambos extremos."""
        current = ensure_utc(now) if now is not None else utcnow()
        return self.start_date <= current <= self.end_date

    def is_valid(self, now: datetime | None = None) -> bool:
        return self.is_active() and self.is_within_period(now)

    # -------------------------
    # Máquina de estados
    # -------------------------
    def can_transition_to(self, new_status: EventStatus) -> bool:
        return new_status in EVENT_STATUS_TRANSITIONS.get(self.status, frozenset())

    def change_status(
        self, new_status: EventStatus | str, *, now: datetime | None = None
    ) -> None:
        target = parse_enum(EventStatus, new_status, field_name="event status")
        if not self.can_transition_to(target):
            raise InvalidStatusTransitionError(
                "event", self.status.value, target.value
            )
        self.status = target
        self.updated_at = now or utcnow()

    def auto_update_status(self, now: datetime | None = None) -> bool:
        """
        Fuerza EXPIRED si el período terminó.

        Returns:
            True si el estado cambió (el caller debe persistir).
        """
        current = ensure_utc(now) if now is not None else utcnow()
        if current > self.end_date and self.status is not EventStatus.EXPIRED:
            self.status = EventStatus.EXPIRED
            self.updated_at = current
            return True
        return False

    # -------------------------
    # Mutaciones
    # -------------------------
    _UPDATABLE_FIELDS = frozenset(
        {
            "name",
            "description",
            "condition_type",
            "condition_params",
            "start_date",
            "end_date",
            "metadata",
        }
    )

    def update(self, *, now: datetime | None = None, **changes: Any) -> None:
        """
        Aplica cambios parciales y re-valida.

        - Campos None se ignoran.
        - condition_params y metadata se mergean (no reemplazan).
        - id / status / created_at no se modifican por acá.
        """
        unknown = set(changes) - self._UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                details={"fields": sorted(unknown)},
            )

        snapshot = dict(self.__dict__)
        try:
            for key, value in changes.items():
                if value is None:
                    continue
                if key == "condition_params":
                    merged = dict(self.condition_params)
                    merged.update(normalize_condition_params(value))
                    self.condition_params = merged
                elif key == "metadata":
                    self.metadata = {**self.metadata, **value}
                elif key == "condition_type":
                    self.condition_type = parse_enum(
                        ConditionType, value, field_name="condition type"
                    )
                elif key in ("start_date", "end_date"):
                    setattr(self, key, ensure_utc(value, field_name=key))
                else:
                    setattr(self, key, value)
            self.validate()
        except ValidationError:
            # R: update es todo-o-nada; un cambio inválido no deja estado parcial.
            self.__dict__.update(snapshot)
            raise

        self.updated_at = now or utcnow()

    def update_metadata(self, key: str, value: Any, *, now: datetime | None = None) -> None:
        self.metadata = {**self.metadata, key: value}
        self.updated_at = now or utcnow()


# ---------------------------------------------------------------------------
# Reward
# ---------------------------------------------------------------------------
@dataclass
class Reward:
    """Definición de pago asociada a un Event (event_id es inmutable)."""

    id: str
    event_id: str
    type: RewardType
    amount: float = 1
    description: str = ""
    requires_approval: bool = False
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.type = parse_enum(RewardType, self.type, field_name="reward type")
        self.metadata = dict(self.metadata or {})
        self.created_at = ensure_utc(self.created_at, field_name="created_at")
        self.updated_at = ensure_utc(self.updated_at, field_name="updated_at")

    @classmethod
    def create(
        cls,
        *,
        event_id: str,
        reward_type: RewardType | str,
        amount: float | None = None,
        description: str = "",
        requires_approval: bool = False,
        metadata: Dict[str, Any] | None = None,
        reward_id: str | None = None,
        now: datetime | None = None,
    ) -> "Reward":
        if not (event_id or "").strip():
            raise ValidationError("Reward event_id is required", details={"field": "event_id"})
        created = now or utcnow()
        reward = cls(
            id=reward_id or new_id(),
            event_id=event_id,
            type=reward_type,
            amount=1 if amount is None else amount,
            description=description or "",
            requires_approval=bool(requires_approval),
            metadata=metadata or {},
            created_at=created,
            updated_at=created,
        )
        reward._validate_amount()
        return reward

    def _validate_amount(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, (int, float)):
            raise ValidationError("Reward amount must be a number", details={"field": "amount"})
        if self.amount <= 0:
            raise ValidationError("Reward amount must be > 0", details={"field": "amount"})

    def update(
        self,
        *,
        reward_type: RewardType | str | None = None,
        amount: float | None = None,
        description: str | None = None,
        requires_approval: bool | None = None,
        metadata: Dict[str, Any] | None = None,
        now: datetime | None = None,
    ) -> None:
        """Cambios parciales; event_id nunca cambia."""
        if reward_type is not None:
            self.type = parse_enum(RewardType, reward_type, field_name="reward type")
        if amount is not None:
            previous = self.amount
            self.amount = amount
            try:
                self._validate_amount()
            except ValidationError:
                self.amount = previous
                raise
        if description:
            self.description = description
        if requires_approval is not None:
            self.requires_approval = bool(requires_approval)
        if metadata:
            self.metadata = {**self.metadata, **metadata}
        self.updated_at = now or utcnow()

    def needs_approval(self) -> bool:
        return self.requires_approval

    def update_metadata(self, key: str, value: Any, *, now: datetime | None = None) -> None:
        self.metadata = {**self.metadata, key: value}
        self.updated_at = now or utcnow()


# ---------------------------------------------------------------------------
# RewardClaim
# ---------------------------------------------------------------------------
@dataclass
class RewardClaim:
    """
    Pedido de un usuario para cobrar un Reward.

    Máquina de estados:
      PENDING → APPROVED | REJECTED
      APPROVED → COMPLETED
      REJECTED / COMPLETED son terminales.
    """

    id: str
    user_id: str
    event_id: str
    reward_id: str
    status: ClaimStatus = ClaimStatus.PENDING
    request_date: Optional[datetime] = None
    process_date: Optional[datetime] = None
    approver_id: Optional[str] = None
    rejection_reason: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        self.status = parse_enum(ClaimStatus, self.status, field_name="claim status")
        self.metadata = dict(self.metadata or {})
        self.request_date = ensure_utc(self.request_date, field_name="request_date")
        self.process_date = ensure_utc(self.process_date, field_name="process_date")
        self.created_at = ensure_utc(self.created_at, field_name="created_at")
        self.updated_at = ensure_utc(self.updated_at, field_name="updated_at")

    @classmethod
    def create(
        cls,
        *,
        user_id: str,
        event_id: str,
        reward_id: str,
        status: ClaimStatus = ClaimStatus.PENDING,
        metadata: Dict[str, Any] | None = None,
        claim_id: str | None = None,
        now: datetime | None = None,
    ) -> "RewardClaim":
        created = now or utcnow()
        return cls(
            id=claim_id or new_id(),
            user_id=user_id,
            event_id=event_id,
            reward_id=reward_id,
            status=status,
            request_date=created,
            metadata=metadata or {},
            created_at=created,
            updated_at=created,
        )

    def _transition(self, allowed_from: ClaimStatus, target: ClaimStatus) -> None:
        if self.status is not allowed_from:
            raise InvalidStatusTransitionError("claim", self.status.value, target.value)
        self.status = target

    def approve(self, approver_id: str, *, now: datetime | None = None) -> None:
        self._transition(ClaimStatus.PENDING, ClaimStatus.APPROVED)
        current = now or utcnow()
        self.approver_id = approver_id
        self.process_date = current
        self.updated_at = current

    def reject(
        self, approver_id: str, reason: str, *, now: datetime | None = None
    ) -> None:
        self._transition(ClaimStatus.PENDING, ClaimStatus.REJECTED)
        current = now or utcnow()
        self.approver_id = approver_id
        self.rejection_reason = reason
        self.process_date = current
        self.updated_at = current

    def complete(self, *, now: datetime | None = None) -> None:
        self._transition(ClaimStatus.APPROVED, ClaimStatus.COMPLETED)
        current = now or utcnow()
        self.process_date = current
        self.updated_at = current

    def is_pending(self) -> bool:
        return self.status is ClaimStatus.PENDING

    def is_approved(self) -> bool:
        return self.status is ClaimStatus.APPROVED

    def is_rejected(self) -> bool:
        return self.status is ClaimStatus.REJECTED

    def is_completed(self) -> bool:
        return self.status is ClaimStatus.COMPLETED

    def update_metadata(self, key: str, value: Any, *, now: datetime | None = None) -> None:
        self.metadata = {**self.metadata, key: value}
        self.updated_at = now or utcnow()


# ---------------------------------------------------------------------------
# UserEvent (ledger entry)
# ---------------------------------------------------------------------------
@dataclass(frozen=True)
class UserEvent:
    """Registro inmutable de un comportamiento del usuario (evidencia para reglas)."""

    id: str
    user_id: str
    event_type: str
    event_key: str
    occurred_at: datetime
    metadata: Dict[str, Any] = field(default_factory=dict)
    idempotency_key: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self) -> None:
        # frozen: normalizamos vía object.__setattr__ (solo en construcción)
        object.__setattr__(
            self, "occurred_at", ensure_utc(self.occurred_at, field_name="occurred_at")
        )
        object.__setattr__(
            self, "created_at", ensure_utc(self.created_at, field_name="created_at")
        )
        object.__setattr__(self, "metadata", dict(self.metadata or {}))

    @classmethod
    def create(
        cls,
        *,
        user_id: str,
        event_type: str,
        event_key: str,
        occurred_at: datetime | str | None = None,
        metadata: Dict[str, Any] | None = None,
        idempotency_key: str | None = None,
        entry_id: str | None = None,
        now: datetime | None = None,
    ) -> "UserEvent":
        for field_name, value in (
            ("user_id", user_id),
            ("event_type", event_type),
            ("event_key", event_key),
        ):
            if not isinstance(value, str) or not value.strip():
                raise ValidationError(
                    f"User event {field_name} is required", details={"field": field_name}
                )
        created = now or utcnow()
        return cls(
            id=entry_id or new_id(),
            user_id=user_id,
            event_type=event_type,
            event_key=event_key,
            occurred_at=occurred_at or created,
            metadata=metadata or {},
            idempotency_key=idempotency_key or None,
            created_at=created,
        )
