"""
===============================================================================
TARJETA CRC — application/condition_evaluator.py
===============================================================================

Class:
    ConditionEvaluator (+ LoginConditionHandler, CustomConditionHandler)

Responsibilities:
    - Decidir si un usuario cumple la condición de un evento a partir del
      ledger de comportamiento.
    - Despachar por ConditionType a un handler registrado (Strategy);
      tipos sin handler => no elegible (fail-closed) + warning.
    - validate(): devolver un resultado con metadata de auditoría, que el
      procesador de claims guarda junto al claim.

Collaborators:
    - application.user_event_ledger.UserEventLedger (evidencia)
    - application.event_store.EventStore (carga del evento, lectura consistente)
    - domain.entities.Event, ConditionType

Rules:
    - LOGIN: cantidad total de entradas event_type == "login" del usuario
      (sin ventana temporal) >= required_count.
    - CUSTOM: event_code se mapea a un event_key (códigos sin mapeo pasan
      tal cual); elegible si existe una entrada event_type == "custom" con esa key.
    - Un evento no válido (inactivo / fuera de período) nunca es elegible.
===============================================================================
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Protocol

from ..crosscutting.logger import logger
from ..domain.entities import ConditionType, Event, utcnow
from .event_store import EventStore
from .user_event_ledger import UserEventLedger

LOGIN_EVENT_TYPE = "login"
CUSTOM_EVENT_TYPE = "custom"

# R: event_code (config del evento) -> event_key (registrado en el ledger)
CUSTOM_EVENT_KEY_MAP: Dict[str, str] = {
    "register": "user-register",
    "SIGN_UP": "user-register",
    "profile_update": "user-profile_update",
    "purchase": "user-purchase",
    "login": "user-login",
}


@dataclass(frozen=True)
class ConditionValidationResult:
    is_valid: bool
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class ConditionHandler(Protocol):
    condition_type: ConditionType

    def evaluate(
        self,
        user_id: str,
        event: Event,
        ledger: UserEventLedger,
        action: Optional[Dict[str, Any]] = None,
    ) -> bool:
        ...


class LoginConditionHandler:
    condition_type = ConditionType.LOGIN

    def evaluate(
        self,
        user_id: str,
        event: Event,
        ledger: UserEventLedger,
        action: Optional[Dict[str, Any]] = None,
    ) -> bool:
        required = event.condition_params.get("required_count")
        if not isinstance(required, int) or required < 1:
            logger.warning(
                "Login condition without valid required_count",
                extra={"event_id": event.id},
            )
            return False
        count = len(ledger.find_by_user(user_id, LOGIN_EVENT_TYPE))
        return count >= required


class CustomConditionHandler:
    condition_type = ConditionType.CUSTOM

    def __init__(self, key_map: Optional[Dict[str, str]] = None) -> None:
        self._key_map = dict(CUSTOM_EVENT_KEY_MAP if key_map is None else key_map)

    def event_key_for(self, event_code: str) -> str:
        return self._key_map.get(event_code, event_code)

    def evaluate(
        self,
        user_id: str,
        event: Event,
        ledger: UserEventLedger,
        action: Optional[Dict[str, Any]] = None,
    ) -> bool:
        event_code = event.condition_params.get("event_code")
        if not event_code:
            return False
        expected_key = self.event_key_for(event_code)
        return any(
            entry.event_key == expected_key
            for entry in ledger.find_by_user(user_id, CUSTOM_EVENT_TYPE)
        )


def default_handlers() -> List[ConditionHandler]:
    return [LoginConditionHandler(), CustomConditionHandler()]


class ConditionEvaluator:
    def __init__(
        self,
        ledger: UserEventLedger,
        events: EventStore,
        *,
        handlers: Optional[Iterable[ConditionHandler]] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._ledger = ledger
        self._events = events
        self._clock = clock
        self._handlers: Dict[ConditionType, ConditionHandler] = {
            h.condition_type: h for h in (default_handlers() if handlers is None else handlers)
        }

    @property
    def supported_types(self) -> List[str]:
        return [t.value for t in self._handlers]

    def evaluate(
        self,
        user_id: str,
        event: Event,
        action: Optional[Dict[str, Any]] = None,
    ) -> bool:
        if not event.is_valid(self._clock()):
            return False

        handler = self._handlers.get(event.condition_type)
        if handler is None:
            logger.warning(
                "Unsupported condition type (not eligible)",
                extra={"event_id": event.id, "condition_type": str(event.condition_type)},
            )
            return False
        return handler.evaluate(user_id, event, self._ledger, action)

    def validate(self, user_id: str, event_id: str) -> ConditionValidationResult:
        """
        Evalúa elegibilidad con metadata de auditoría.

        Raises:
            EventNotFoundError: si el evento no existe.
        """
        now = self._clock()
        validated_at = now.isoformat()
        event = self._events.find_by_id(event_id, use_cache=False)

        if not event.is_valid(now):
            return ConditionValidationResult(
                is_valid=False,
                error_message="Event is not active or is outside its period",
                metadata={
                    "validated_at": validated_at,
                    "event_status": event.status.value,
                    "start_date": event.start_date.isoformat(),
                    "end_date": event.end_date.isoformat(),
                },
            )

        condition_type = event.condition_type.value
        if event.condition_type not in self._handlers:
            return ConditionValidationResult(
                is_valid=False,
                error_message=f"Unsupported event condition type: {condition_type}",
                metadata={
                    "validated_at": validated_at,
                    "event_type": condition_type,
                    "supported_types": self.supported_types,
                },
            )

        eligible = self.evaluate(user_id, event)
        return ConditionValidationResult(
            is_valid=eligible,
            error_message=None if eligible else "Event condition is not met",
            metadata={
                "validated_at": validated_at,
                "user_id": user_id,
                "event_id": event_id,
                "condition_type": condition_type,
            },
        )

    def is_eligible_for_reward(self, user_id: str, event_id: str) -> bool:
        event = self._events.find_by_id(event_id)
        if not event.is_valid(self._clock()):
            return False
        return self.evaluate(user_id, event)
