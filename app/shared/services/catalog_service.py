# app/shared/services/catalog_service.py
from datetime import date
from typing import Optional

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError, ValidationError
from app.shared.database.models import (
    Product, Supplier, TaxRate, UnitOfMeasure, PaymentMethod, Customer
)
from app.shared.states import RecordStatus


class CatalogService:
    """
    Consulta de datos de referencia (producto, proveedor, IVA, unidad de medida,
    método de pago, cliente). El flujo de inventario sólo los lee.

    Los métodos find_* devuelven None si no existe; los require_* levantan
    NotFoundError / ValidationError con el mensaje para el cliente.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_product(self, product_id: str) -> Optional[Product]:
        return self.db.query(Product).filter(Product.id == product_id).first()

    def find_supplier(self, supplier_id: str) -> Optional[Supplier]:
        return self.db.query(Supplier).filter(Supplier.id == supplier_id).first()

    def find_tax_rate(self, tax_rate_id: int) -> Optional[TaxRate]:
        return self.db.query(TaxRate).filter(TaxRate.id == tax_rate_id).first()

    def find_unit_of_measure(self, unit_id: int) -> Optional[UnitOfMeasure]:
        return self.db.query(UnitOfMeasure).filter(UnitOfMeasure.id == unit_id).first()

    def find_payment_method(self, payment_method_id: int) -> Optional[PaymentMethod]:
        return self.db.query(PaymentMethod).filter(PaymentMethod.id == payment_method_id).first()

    def find_customer(self, customer_id: Optional[int] = None, document: Optional[str] = None) -> Optional[Customer]:
        query = self.db.query(Customer)
        if customer_id is not None:
            return query.filter(Customer.id == customer_id).first()
        if document:
            return query.filter(Customer.document == document.strip()).first()
        return None

    # ------------------------------------------------------------------
    # Validaciones reutilizadas por los managers
    # ------------------------------------------------------------------

    def require_active_supplier(self, supplier_id: str) -> Supplier:
        supplier = self.find_supplier(supplier_id)
        if not supplier:
            raise NotFoundError("El proveedor no existe")
        if supplier.state != RecordStatus.ACTIVE.value:
            raise ValidationError("El proveedor no está activo")
        return supplier

    def require_active_product(self, product_id: str) -> Product:
        product = self.find_product(product_id)
        if not product:
            raise NotFoundError(f"El producto {product_id} no existe")
        if product.state != RecordStatus.ACTIVE.value:
            raise ValidationError(f"El producto {product_id} no está activo")
        return product

    def require_valid_tax_rate(self, tax_rate_id: int, on_date: Optional[date] = None) -> TaxRate:
        """IVA existente, activo y vigente a la fecha (hoy por defecto)"""
        tax_rate = self.find_tax_rate(tax_rate_id)
        if not tax_rate:
            raise NotFoundError("IVA no encontrado")
        if tax_rate.state != RecordStatus.ACTIVE.value:
            raise ValidationError("El IVA no está activo")

        on_date = on_date or date.today()
        if tax_rate.valid_from > on_date or (tax_rate.valid_to and tax_rate.valid_to < on_date):
            raise ValidationError(f"El IVA {tax_rate_id} no está vigente al {on_date.isoformat()}")
        return tax_rate

    def require_payment_method(self, payment_method_id: int) -> PaymentMethod:
        payment_method = self.find_payment_method(payment_method_id)
        if not payment_method:
            raise NotFoundError("Método de pago no encontrado")
        if payment_method.state != RecordStatus.ACTIVE.value:
            raise ValidationError("El método de pago no está activo")
        return payment_method

    def require_customer(self, customer_id: Optional[int] = None, document: Optional[str] = None) -> Customer:
        if customer_id is None and not document:
            raise ValidationError("Debe indicar el cliente (id_cliente o cédula)")
        customer = self.find_customer(customer_id, document)
        if not customer:
            raise NotFoundError("Cliente no encontrado")
        return customer
