# app/shared/database/unit_of_work.py
from contextlib import contextmanager
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import DomainError, InfrastructureError

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(db: Session, operation: str):
    """
    Una operación del flujo = una transacción.

    - Commit único al salir sin errores
    - DomainError: rollback y se re-lanza tal cual (error de negocio)
    - SQLAlchemyError: rollback y se re-lanza como InfrastructureError genérico
    """
    try:
        yield db
        db.commit()
    except DomainError as e:
        db.rollback()
        logger.warning(f"{operation} rechazada: {e.detail}")
        raise
    except SQLAlchemyError:
        db.rollback()
        logger.exception(f"Error de base de datos en {operation}")
        raise InfrastructureError()
    except Exception:
        db.rollback()
        logger.exception(f"Error inesperado en {operation}")
        raise
