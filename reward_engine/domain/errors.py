"""
===============================================================================
MÓDULO: Errores tipados del motor de recompensas
===============================================================================

Objetivo
--------
Tener errores de negocio coherentes, con:
- error_code estable (para mapear a la capa de transporte)
- error_id para correlación con logs
- message “humana” (sin filtrar secretos)
- details opcionales (metadata de auditoría, ej: resultado del evaluador)

-------------------------------------------------------------------------------
CRC (Component Card)
-------------------------------------------------------------------------------
Componente:
  RewardEngineError + subclases

Responsabilidades:
  - Estandarizar la taxonomía NotFound / Validation / Conflict /
    InvalidStatusTransition / EventConditionNotMet
  - Generar error_id para rastreo

Colaboradores:
  - domain/entities.py (validación y transiciones)
  - application/* (stores, evaluador, procesador de claims)
  - infrastructure/db/errors.py (DatabaseError)
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4


@dataclass(frozen=True)
class ErrorResponse:
    """Estructura mínima para responder errores de forma consistente."""

    error_code: str
    message: str
    error_id: str
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            "error_code": self.error_code,
            "message": self.message,
            "error_id": self.error_id,
        }
        if self.details:
            payload["details"] = dict(self.details)
        return payload


class RewardEngineError(Exception):
    """
    ----------------------------------------------------------------------------
    CRC (Class Card)
    ----------------------------------------------------------------------------
    Clase:
      RewardEngineError

    Responsabilidades:
      - Base para errores del motor
      - Proveer error_code + error_id + message + details

    Colaboradores:
      - Capa de transporte (fuera del paquete) vía to_response()
    ----------------------------------------------------------------------------
    """

    error_code: str = "REWARD_ENGINE_ERROR"

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        error_id: str | None = None,
        original_error: Exception | None = None,
    ):
        self.message = message
        self.details = dict(details or {})
        self.error_id = error_id or str(uuid4())
        self.original_error = original_error
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        return ErrorResponse(
            error_code=self.error_code,
            message=self.message,
            error_id=self.error_id,
            details=self.details,
        )


# =============================================================================
# NotFound
# =============================================================================
class NotFoundError(RewardEngineError):
    """Entidad referenciada inexistente."""

    error_code: str = "NOT_FOUND"


class EventNotFoundError(NotFoundError):
    def __init__(self, event_id: str):
        super().__init__(
            f"Event with ID {event_id} not found", details={"event_id": event_id}
        )


class RewardNotFoundError(NotFoundError):
    def __init__(self, reward_id: str):
        super().__init__(
            f"Reward with ID {reward_id} not found", details={"reward_id": reward_id}
        )


class ClaimNotFoundError(NotFoundError):
    def __init__(self, claim_id: str):
        super().__init__(
            f"Reward claim with ID {claim_id} not found",
            details={"claim_id": claim_id},
        )


# =============================================================================
# Validation
# =============================================================================
class ValidationError(RewardEngineError):
    """Entrada o estado de negocio inválido (campo faltante, fechas, params)."""

    error_code: str = "VALIDATION_ERROR"


class EventNotActiveError(ValidationError):
    """El evento no está ACTIVE o está fuera de su período."""


class RewardNotLinkedError(ValidationError):
    """La recompensa no pertenece al evento del claim."""


# =============================================================================
# State machine
# =============================================================================
class InvalidStatusTransitionError(RewardEngineError):
    """Transición no permitida por la máquina de estados (evento o claim)."""

    error_code: str = "INVALID_STATUS_TRANSITION"

    def __init__(self, entity: str, current: str, target: str):
        super().__init__(
            f"Cannot change {entity} status from {current} to {target}",
            details={"entity": entity, "current": current, "target": target},
        )


# =============================================================================
# Conflict
# =============================================================================
class ConflictError(RewardEngineError):
    """Conflicto con el estado existente (duplicados, operación concurrente)."""

    error_code: str = "CONFLICT"


class DuplicateClaimError(ConflictError):
    """Ya existe un claim para (user, event) o (user, reward)."""

    error_code: str = "DUPLICATE_CLAIM"


class ClaimInProgressError(ConflictError):
    """Otro request está creando un claim para el mismo (user, event)."""

    error_code: str = "CLAIM_IN_PROGRESS"


class DuplicateIdempotencyKeyError(ConflictError):
    """
    La storage rechazó un segundo registro con la misma idempotency key.

    Nota:
      - Es interno: el ledger lo convierte en “devolver el existente”.
    """

    error_code: str = "DUPLICATE_IDEMPOTENCY_KEY"

    def __init__(self, idempotency_key: str):
        super().__init__(
            f"User event with idempotency key {idempotency_key} already recorded",
            details={"idempotency_key": idempotency_key},
        )
        self.idempotency_key = idempotency_key


# =============================================================================
# Eligibility
# =============================================================================
class EventConditionNotMetError(RewardEngineError):
    """El usuario no cumple la condición del evento (details = metadata del evaluador)."""

    error_code: str = "EVENT_CONDITION_NOT_MET"
