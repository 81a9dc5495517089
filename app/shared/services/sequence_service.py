# app/shared/services/sequence_service.py
import logging

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import ConflictError
from app.shared.database.models import DocumentSequence

logger = logging.getLogger(__name__)


class SequenceService:
    """
    Numeración de documentos por prefijo y año: {prefijo}-{año}-{NNNNNN}.

    El contador vive en una fila por (prefijo, año) que se bloquea con
    SELECT FOR UPDATE dentro de la transacción del documento, de modo que dos
    creaciones concurrentes no pueden leer el mismo número. La clave primaria
    del documento es la segunda barrera.
    """

    @staticmethod
    def format_id(prefix: str, year: int, number: int) -> str:
        return f"{prefix}-{year}-{number:06d}"

    @staticmethod
    def parse_number(document_id: str) -> int:
        return int(document_id.rsplit('-', 1)[1])

    @classmethod
    def next_id(cls, db: Session, prefix: str, year: int, id_column) -> str:
        """
        Reservar el siguiente identificador del año.

        Args:
            db: Sesión con la transacción del documento abierta
            prefix: 'F' para facturas, 'OC' para órdenes de compra
            year: Año del documento
            id_column: Columna id del modelo, usada para inicializar el
                contador desde los documentos ya existentes de ese año

        Raises:
            ConflictError: Si otra transacción creó el contador al mismo tiempo
        """
        sequence = db.query(DocumentSequence).filter(
            DocumentSequence.prefix == prefix,
            DocumentSequence.year == year
        ).with_for_update().first()

        if sequence is None:
            last_id = db.query(func.max(id_column)).filter(
                id_column.like(f"{prefix}-{year}-%")
            ).scalar()
            sequence = DocumentSequence(
                prefix=prefix,
                year=year,
                last_number=cls.parse_number(last_id) if last_id else 0
            )
            db.add(sequence)
            try:
                db.flush()
            except IntegrityError:
                logger.warning(f"Contador {prefix}-{year} creado concurrentemente")
                raise ConflictError(
                    "Numeración de documentos en uso por otra transacción. Intente nuevamente."
                )

        sequence.last_number += 1
        db.flush()

        return cls.format_id(prefix, year, sequence.last_number)
