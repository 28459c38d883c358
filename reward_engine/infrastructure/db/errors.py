"""
===============================================================================
CRC CARD — infrastructure/db/errors.py
===============================================================================

Componente:
  Errores tipados de DB (pool + queries)

Responsabilidades:
  - Evitar RuntimeError genéricos.
  - Dar semántica clara: "no inicializado", "ya inicializado", fallo de query.
===============================================================================
"""

from ...domain.errors import RewardEngineError


class DatabaseError(RewardEngineError):
    """Errores de DB (conexión, query, timeout) envueltos por los repos."""

    error_code: str = "DATABASE_ERROR"


class DatabasePoolError(Exception):
    """Base de errores de pool de base de datos."""


class PoolAlreadyInitializedError(DatabasePoolError):
    """Se intentó inicializar el pool más de una vez."""


class PoolNotInitializedError(DatabasePoolError):
    """Se intentó usar el pool sin init_pool()."""
