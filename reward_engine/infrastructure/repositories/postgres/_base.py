"""
============================================================
TARJETA CRC — infrastructure/repositories/postgres/_base.py
============================================================
Class: PostgresRepository

Responsibilities:
- Resolver el pool (inyectado o global) de forma lazy.
- Helpers de ejecución con errores consistentes:
    _fetchall / _fetchone / _execute
  Toda falla del driver se loguea con contexto y se envuelve en DatabaseError,
  EXCEPTO UniqueViolation, que se re-lanza para que cada repo la traduzca a
  su error de dominio (DuplicateClaimError / DuplicateIdempotencyKeyError).

Collaborators:
- psycopg_pool.ConnectionPool
- infrastructure.db.errors.DatabaseError
- crosscutting.logger.logger
============================================================
"""

from __future__ import annotations

from typing import Iterable, Optional

from psycopg.errors import UniqueViolation
from psycopg_pool import ConnectionPool

from ....crosscutting.logger import logger
from ...db.errors import DatabaseError


class PostgresRepository:
    def __init__(self, pool: Optional[ConnectionPool] = None):
        # R: Pool inyectable para tests; en producción se obtiene por factory global.
        self._pool = pool

    def _get_pool(self) -> ConnectionPool:
        if self._pool is not None:
            return self._pool

        from ...db.pool import get_pool

        return get_pool()

    def _fail(self, context_msg: str, extra: dict, exc: Exception) -> DatabaseError:
        logger.exception(context_msg, extra={**extra, "error": str(exc)})
        return DatabaseError(f"{context_msg}: {exc}", original_error=exc)

    def _fetchall(
        self, *, query: str, params: Iterable[object], context_msg: str, extra: dict
    ) -> list[tuple]:
        try:
            with self._get_pool().connection() as conn:
                return conn.execute(query, tuple(params)).fetchall()
        except Exception as exc:
            raise self._fail(context_msg, extra, exc) from exc

    def _fetchone(
        self, *, query: str, params: Iterable[object], context_msg: str, extra: dict
    ) -> tuple | None:
        try:
            with self._get_pool().connection() as conn:
                return conn.execute(query, tuple(params)).fetchone()
        except Exception as exc:
            raise self._fail(context_msg, extra, exc) from exc

    def _execute(
        self, *, query: str, params: Iterable[object], context_msg: str, extra: dict
    ) -> int:
        """Ejecuta un write; devuelve rowcount. UniqueViolation se propaga tal cual."""
        try:
            with self._get_pool().connection() as conn:
                return conn.execute(query, tuple(params)).rowcount
        except UniqueViolation:
            raise
        except Exception as exc:
            raise self._fail(context_msg, extra, exc) from exc
