from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

ADMIN = "administrador"
WAREHOUSE_KEEPER = "bodeguero"
CASHIER = "cajero"
CUSTOMER = "cliente"

class CurrentUser(BaseModel):
    """Identidad ya autenticada que se inyecta en las operaciones del flujo"""
    user_id: int = Field(..., description="ID de usuario")
    employee_id: Optional[int] = Field(None, description="ID de empleado (personal de tienda)")
    role: str = Field(..., description="Rol del usuario")

    @property
    def is_staff(self) -> bool:
        return self.employee_id is not None

class TokenPayload(BaseModel):
    """Schema para payload del token"""
    user_id: int
    employee_id: Optional[int] = None
    role: str
    exp: Optional[datetime] = None
