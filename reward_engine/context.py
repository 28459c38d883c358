"""
===============================================================================
TARJETA CRC — reward_engine/context.py (Contexto por request)
===============================================================================

Responsabilidades:
  - Mantener contexto “request-scoped” usando ContextVars (thread/async-safe).
  - Permitir correlación de logs sin pasar parámetros por todo el stack.
  - Proveer helpers mínimos: set_request_context(), get_context_dict(),
    operation_context(),
    clear_context() y request_context() como context manager.

Colaboradores:
  - crosscutting.logger: enriquece logs leyendo get_context_dict().
  - Capa de transporte (fuera de este paquete): setea request_id/user_id.

Restricciones:
  - Solo tipos primitivos (str) para serialización segura.
  - Defaults vacíos ("") para evitar None y simplificar JSON.
===============================================================================
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import Final, Iterator

# Identificador de request (idealmente UUID o ID estable del caller).
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Usuario sobre el que opera el request (claims, ledger).
user_id_var: ContextVar[str] = ContextVar("user_id", default="")

# Operación de negocio en curso (ej: "create_claim").
operation_var: ContextVar[str] = ContextVar("operation", default="")

_CTX_REQUEST_ID: Final[str] = "request_id"
_CTX_USER_ID: Final[str] = "user_id"
_CTX_OPERATION: Final[str] = "operation"


def set_request_context(
    *, request_id: str = "", user_id: str = "", operation: str = ""
) -> None:
    """
    Setea el contexto mínimo del request.

    Regla:
      - Strings vacíos significan “no disponible”.
    """
    request_id_var.set(request_id or "")
    user_id_var.set(user_id or "")
    operation_var.set(operation or "")


def get_context_dict() -> dict[str, str]:
    """Devuelve el contexto actual como dict, omitiendo claves vacías."""
    ctx: dict[str, str] = {}

    if val := request_id_var.get():
        ctx[_CTX_REQUEST_ID] = val
    if val := user_id_var.get():
        ctx[_CTX_USER_ID] = val
    if val := operation_var.get():
        ctx[_CTX_OPERATION] = val

    return ctx


def clear_context() -> None:
    """
    Limpia el contexto al final del request.

    Importante:
      - Evita “filtración de contexto” entre requests en workers reutilizados.
    """
    request_id_var.set("")
    user_id_var.set("")
    operation_var.set("")


@contextmanager
def request_context(
    *, request_id: str = "", user_id: str = "", operation: str = ""
) -> Iterator[None]:
    """Setea el contexto durante el bloque y lo limpia al salir."""
    set_request_context(request_id=request_id, user_id=user_id, operation=operation)
    try:
        yield
    finally:
        clear_context()


@contextmanager
def operation_context(operation: str, user_id: str = "") -> Iterator[None]:
    """
    Etiqueta una operación del motor durante el bloque.

    - Conserva el request_id del caller.
    - Al salir restaura operation/user_id previos (tokens de ContextVar).
    """
    op_token = operation_var.set(operation)
    user_token = user_id_var.set(user_id) if user_id else None
    try:
        yield
    finally:
        if user_token is not None:
            user_id_var.reset(user_token)
        operation_var.reset(op_token)
