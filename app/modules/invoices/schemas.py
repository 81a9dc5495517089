# app/modules/invoices/schemas.py
from pydantic import BaseModel, Field
from typing import Optional, List
from decimal import Decimal
from datetime import datetime
from app.shared.schemas.common import BaseResponse, ORMModel

class InvoiceLineInput(BaseModel):
    product_id: str = Field(..., description="ID del producto")
    quantity: int = Field(..., description="Cantidad vendida")
    unit_price: Optional[Decimal] = Field(None, description="Precio unitario; por defecto el precio de venta del producto")

class InvoiceCreate(BaseModel):
    """
    Factura desde detalle directo (POS) o desde carrito (e-commerce).
    Se debe indicar `lines` o `cart_id`, no ambos.
    """
    customer_id: Optional[int] = Field(None, description="ID del cliente")
    customer_document: Optional[str] = Field(None, description="Cédula/RUC del cliente (alternativa al ID)")
    payment_method_id: Optional[int] = Field(None, description="Método de pago")
    tax_rate_id: int = Field(..., description="IVA vigente a aplicar")
    cart_id: Optional[str] = Field(None, description="Carrito a facturar")
    lines: Optional[List[InvoiceLineInput]] = Field(None, description="Detalle directo")

    class Config:
        json_schema_extra = {
            "example": {
                "customer_document": "0102030405",
                "payment_method_id": 1,
                "tax_rate_id": 1,
                "lines": [{"product_id": "P001", "quantity": 2}]
            }
        }

class InvoiceCancel(BaseModel):
    reason: Optional[str] = Field(None, max_length=500, description="Motivo de anulación")

class CustomerInfo(ORMModel):
    id: int
    document: str
    full_name: str

class InvoiceLineOut(ORMModel):
    product_id: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

class InvoiceOut(ORMModel):
    id: str
    customer_id: int
    channel: str
    payment_method_id: int
    tax_rate_id: int
    employee_id: Optional[int] = None
    user_id: Optional[int] = None
    cart_id: Optional[str] = None
    state: str
    subtotal: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    total: Decimal
    issued_at: datetime
    canceled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    picked_up_at: Optional[datetime] = None
    customer: Optional[CustomerInfo] = None
    lines: List[InvoiceLineOut] = []

class InvoiceResponse(BaseResponse):
    invoice: InvoiceOut

class InvoiceListResponse(BaseResponse):
    invoices: List[InvoiceOut]
    total_invoices: int

class PrintCustomer(BaseModel):
    document: str
    full_name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

class PrintLine(BaseModel):
    line: int
    product_id: str
    description: str
    quantity: int
    unit_price: Decimal
    subtotal: Decimal

class InvoicePrintData(BaseModel):
    invoice_number: str
    issued_at: datetime
    state: str
    state_text: str
    channel: str
    customer: PrintCustomer
    employee_id: Optional[int] = None
    payment_method: str
    lines: List[PrintLine]
    subtotal: Decimal
    tax_percentage: Decimal
    tax_amount: Decimal
    total: Decimal
    watermark: Optional[str] = None

class InvoicePrintResponse(BaseResponse):
    data: InvoicePrintData
