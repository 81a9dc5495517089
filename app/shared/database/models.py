# app/shared/database/models.py
from sqlalchemy import (
    Column, Integer, String, DateTime, Date, Text,
    Numeric, ForeignKey, UniqueConstraint, CheckConstraint,
    PrimaryKeyConstraint, func
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

MONEY = Numeric(18, 3)

# =====================================================
# MIXIN PARA TIMESTAMPS
# =====================================================
class TimestampMixin:
    """Mixin que agrega campos created_at y updated_at"""
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime, nullable=False, server_default=func.current_timestamp(), onupdate=func.current_timestamp())


# =====================================================
# CATÁLOGO (datos de referencia)
# =====================================================

class Supplier(Base, TimestampMixin):
    """Modelo de Proveedor"""
    __tablename__ = "proveedor"

    id = Column(String(13), primary_key=True)
    business_name = Column(String(255), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    state = Column(String(3), nullable=False, default='ACT')

    purchase_orders = relationship("PurchaseOrder", back_populates="supplier")


class Category(Base):
    """Modelo de Categoría de producto"""
    __tablename__ = "categoria_producto"

    id = Column(Integer, primary_key=True, index=True)
    description = Column(String(100), nullable=False)
    state = Column(String(3), nullable=False, default='ACT')


class UnitOfMeasure(Base):
    """Modelo de Unidad de medida"""
    __tablename__ = "unidad_medida"

    id = Column(Integer, primary_key=True, index=True)
    description = Column(String(100), nullable=False)
    abbreviation = Column(String(10))
    state = Column(String(3), nullable=False, default='ACT')


class Product(Base, TimestampMixin):
    """
    Modelo de Producto.

    Los campos de inventario forman el libro de stock del producto:
    saldo_actual = saldo_inicial + ingresos - egresos + ajustes
    """
    __tablename__ = "producto"

    id = Column(String(15), primary_key=True)
    description = Column(String(255), nullable=False)
    barcode = Column(String(50), index=True)
    category_id = Column(Integer, ForeignKey("categoria_producto.id"))
    unit_of_measure_id = Column(Integer, ForeignKey("unidad_medida.id"))
    sale_price = Column(MONEY, nullable=False, default=0)
    average_cost = Column(MONEY, nullable=False, default=0)

    # Libro de stock
    initial_balance = Column(Integer, nullable=False, default=0)
    inflow = Column(Integer, nullable=False, default=0)
    outflow = Column(Integer, nullable=False, default=0)
    adjustments = Column(Integer, nullable=False, default=0)
    current_balance = Column(Integer, nullable=False, default=0)

    state = Column(String(3), nullable=False, default='ACT')

    __table_args__ = (
        CheckConstraint('current_balance >= 0', name='ck_producto_saldo_no_negativo'),
        CheckConstraint('inflow >= 0 AND outflow >= 0', name='ck_producto_movimientos'),
    )

    # Relationships
    category = relationship("Category")
    unit_of_measure = relationship("UnitOfMeasure")

    @property
    def expected_balance(self) -> int:
        return self.initial_balance + self.inflow - self.outflow + self.adjustments


class TaxRate(Base):
    """Modelo de IVA"""
    __tablename__ = "iva"

    id = Column(Integer, primary_key=True, index=True)
    percentage = Column(Numeric(5, 2), nullable=False)
    valid_from = Column(Date, nullable=False)
    valid_to = Column(Date)
    state = Column(String(3), nullable=False, default='ACT')


class PaymentMethod(Base):
    """Modelo de Método de pago"""
    __tablename__ = "metodo_pago"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    state = Column(String(3), nullable=False, default='ACT')


class Customer(Base, TimestampMixin):
    """Modelo de Cliente"""
    __tablename__ = "cliente"

    id = Column(Integer, primary_key=True, index=True)
    document = Column(String(13), unique=True, nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255))
    phone = Column(String(50))
    address = Column(Text)
    state = Column(String(3), nullable=False, default='ACT')

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"


# =====================================================
# CARRITO
# =====================================================

class Cart(Base):
    """Modelo de Carrito de compras"""
    __tablename__ = "carrito"

    id = Column(String(36), primary_key=True)
    customer_id = Column(Integer, ForeignKey("cliente.id"))
    created_at = Column(DateTime, server_default=func.current_timestamp())

    lines = relationship("CartLine", back_populates="cart", cascade="all, delete-orphan")


class CartLine(Base):
    """Modelo de Detalle de carrito"""
    __tablename__ = "carrito_detalle"

    id = Column(Integer, primary_key=True, index=True)
    cart_id = Column(String(36), ForeignKey("carrito.id"), nullable=False, index=True)
    product_id = Column(String(15), ForeignKey("producto.id"), nullable=False)
    quantity = Column(Integer, nullable=False)

    cart = relationship("Cart", back_populates="lines")


# =====================================================
# SECUENCIAS DE DOCUMENTOS
# =====================================================

class DocumentSequence(Base):
    """Contador por prefijo y año (OC-2025-000001, F-2025-000001)"""
    __tablename__ = "secuencia_documento"

    prefix = Column(String(5), nullable=False)
    year = Column(Integer, nullable=False)
    last_number = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        PrimaryKeyConstraint('prefix', 'year', name='pk_secuencia_documento'),
    )


# =====================================================
# ÓRDENES DE COMPRA
# =====================================================

class PurchaseOrder(Base):
    """Modelo de Orden de compra"""
    __tablename__ = "compra"

    id = Column(String(20), primary_key=True)
    supplier_id = Column(String(13), ForeignKey("proveedor.id"), nullable=False, index=True)
    subtotal = Column(MONEY, nullable=False, default=0)
    total = Column(MONEY, nullable=False, default=0)
    state = Column(String(3), nullable=False, default='PEN', index=True)
    ordered_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    updated_at = Column(DateTime)
    canceled_at = Column(DateTime)
    cancel_reason = Column(Text)

    __table_args__ = (
        CheckConstraint("state IN ('PEN', 'PAR', 'CER', 'ANU')", name='ck_compra_estado'),
    )

    # Relationships
    supplier = relationship("Supplier", back_populates="purchase_orders")
    lines = relationship(
        "PurchaseOrderLine", back_populates="purchase_order",
        cascade="all, delete-orphan", order_by="PurchaseOrderLine.product_id"
    )
    receipts = relationship("Receipt", back_populates="purchase_order")

    @property
    def receipt_count(self) -> int:
        return len(self.receipts)


class PurchaseOrderLine(Base):
    """Modelo de Detalle de orden de compra"""
    __tablename__ = "detalle_compra"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(String(20), ForeignKey("compra.id"), nullable=False, index=True)
    product_id = Column(String(15), ForeignKey("producto.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_cost = Column(MONEY, nullable=False)
    subtotal = Column(MONEY, nullable=False)
    quantity_received = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('purchase_order_id', 'product_id', name='uq_detalle_compra_producto'),
        CheckConstraint('quantity > 0', name='ck_detalle_compra_cantidad'),
        CheckConstraint('quantity_received >= 0 AND quantity_received <= quantity', name='ck_detalle_compra_recibido'),
    )

    purchase_order = relationship("PurchaseOrder", back_populates="lines")
    product = relationship("Product")

    @property
    def pending_quantity(self) -> int:
        return self.quantity - (self.quantity_received or 0)


# =====================================================
# RECEPCIONES DE BODEGA
# =====================================================

class Receipt(Base):
    """Modelo de Recepción (ingreso de bodega)"""
    __tablename__ = "recepcion"

    id = Column(Integer, primary_key=True, index=True)
    purchase_order_id = Column(String(20), ForeignKey("compra.id"), nullable=False, index=True)
    employee_id = Column(Integer)
    state = Column(String(3), nullable=False, default='ABI', index=True)
    notes = Column(Text)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    approved_at = Column(DateTime)
    approved_by = Column(Integer)
    canceled_at = Column(DateTime)
    cancel_reason = Column(Text)
    adjustment_id = Column(Integer, ForeignKey("ajuste_inventario.id"))

    __table_args__ = (
        CheckConstraint("state IN ('ABI', 'APR', 'ANU')", name='ck_recepcion_estado'),
    )

    purchase_order = relationship("PurchaseOrder", back_populates="receipts")
    lines = relationship(
        "ReceiptLine", back_populates="receipt",
        cascade="all, delete-orphan", order_by="ReceiptLine.product_id"
    )
    adjustment = relationship("InventoryAdjustment")


class ReceiptLine(Base):
    """Modelo de Detalle de recepción"""
    __tablename__ = "detalle_recepcion"

    id = Column(Integer, primary_key=True, index=True)
    receipt_id = Column(Integer, ForeignKey("recepcion.id"), nullable=False, index=True)
    product_id = Column(String(15), ForeignKey("producto.id"), nullable=False)
    expected_quantity = Column(Integer, nullable=False, default=0)
    quantity_received = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint('receipt_id', 'product_id', name='uq_detalle_recepcion_producto'),
        CheckConstraint('quantity_received >= 0', name='ck_detalle_recepcion_cantidad'),
    )

    receipt = relationship("Receipt", back_populates="lines")
    product = relationship("Product")


# =====================================================
# AJUSTES DE INVENTARIO
# =====================================================

class InventoryAdjustment(Base):
    """Modelo de Ajuste de inventario (siempre ligado a una mutación del libro de stock)"""
    __tablename__ = "ajuste_inventario"

    id = Column(Integer, primary_key=True, index=True)
    reason = Column(String(255), nullable=False)
    direction = Column(String(1), nullable=False)
    origin = Column(String(3), nullable=False, default='MAN')
    reference = Column(String(20))
    line_count = Column(Integer, nullable=False, default=0)
    state = Column(String(3), nullable=False, default='ACT')
    employee_id = Column(Integer)
    created_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())

    __table_args__ = (
        CheckConstraint("direction IN ('E', 'S')", name='ck_ajuste_tipo'),
    )

    lines = relationship(
        "AdjustmentLine", back_populates="adjustment",
        cascade="all, delete-orphan", order_by="AdjustmentLine.product_id"
    )


class AdjustmentLine(Base):
    """Modelo de Detalle de ajuste"""
    __tablename__ = "detalle_ajuste"

    id = Column(Integer, primary_key=True, index=True)
    adjustment_id = Column(Integer, ForeignKey("ajuste_inventario.id"), nullable=False, index=True)
    product_id = Column(String(15), ForeignKey("producto.id"), nullable=False)
    quantity = Column(Integer, nullable=False)

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_detalle_ajuste_cantidad'),
    )

    adjustment = relationship("InventoryAdjustment", back_populates="lines")
    product = relationship("Product")


# =====================================================
# FACTURAS
# =====================================================

class Invoice(Base):
    """Modelo de Factura"""
    __tablename__ = "factura"

    id = Column(String(15), primary_key=True)
    customer_id = Column(Integer, ForeignKey("cliente.id"), nullable=False, index=True)
    channel = Column(String(3), nullable=False)
    payment_method_id = Column(Integer, ForeignKey("metodo_pago.id"), nullable=False)
    tax_rate_id = Column(Integer, ForeignKey("iva.id"), nullable=False)
    employee_id = Column(Integer)
    user_id = Column(Integer)
    cart_id = Column(String(36))
    state = Column(String(3), nullable=False, default='EMI', index=True)
    subtotal = Column(MONEY, nullable=False)
    tax_percentage = Column(Numeric(5, 2), nullable=False)
    tax_amount = Column(MONEY, nullable=False)
    total = Column(MONEY, nullable=False)
    issued_at = Column(DateTime, nullable=False, server_default=func.current_timestamp())
    canceled_at = Column(DateTime)
    cancel_reason = Column(Text)
    picked_up_at = Column(DateTime)

    __table_args__ = (
        CheckConstraint("state IN ('EMI', 'ANU', 'PAG', 'APR', 'ENT')", name='ck_factura_estado'),
        CheckConstraint("channel IN ('POS', 'WEB')", name='ck_factura_canal'),
    )

    customer = relationship("Customer")
    payment_method = relationship("PaymentMethod")
    tax_rate = relationship("TaxRate")
    lines = relationship(
        "InvoiceLine", back_populates="invoice",
        cascade="all, delete-orphan", order_by="InvoiceLine.id"
    )


class InvoiceLine(Base):
    """Modelo de Detalle de factura"""
    __tablename__ = "detalle_factura"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(String(15), ForeignKey("factura.id"), nullable=False, index=True)
    product_id = Column(String(15), ForeignKey("producto.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(MONEY, nullable=False)
    subtotal = Column(MONEY, nullable=False)
    state = Column(String(3), nullable=False, default='ACT')

    __table_args__ = (
        CheckConstraint('quantity > 0', name='ck_detalle_factura_cantidad'),
    )

    invoice = relationship("Invoice", back_populates="lines")
    product = relationship("Product")
