from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import ValidationError as PydanticValidationError
from typing import List

from app.core.auth.service import AuthService
from app.core.auth.schemas import CurrentUser, TokenPayload, ADMIN, WAREHOUSE_KEEPER, CASHIER

security = HTTPBearer()

class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

class AuthorizationError(HTTPException):
    def __init__(self, detail: str = "Not enough permissions"):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=detail
        )

async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> CurrentUser:
    """Obtener la identidad actual desde el token"""

    payload = AuthService.verify_token(credentials.credentials)
    if payload is None:
        raise AuthenticationError("Token inválido o expirado")

    try:
        token = TokenPayload(**payload)
    except PydanticValidationError:
        raise AuthenticationError("Payload del token inválido")

    return CurrentUser(user_id=token.user_id, employee_id=token.employee_id, role=token.role)

def require_roles(allowed_roles: List[str]):
    """Factory para crear dependency que requiere roles específicos"""
    def role_checker(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if current_user.role not in allowed_roles:
            raise AuthorizationError(
                f"Rol '{current_user.role}' no autorizado. Roles permitidos: {allowed_roles}"
            )
        return current_user
    return role_checker

# Dependencies específicas por rol
def get_warehouse_user(current_user: CurrentUser = Depends(require_roles([WAREHOUSE_KEEPER, ADMIN]))):
    """Dependency para bodegueros"""
    return current_user

def get_cashier_user(current_user: CurrentUser = Depends(require_roles([CASHIER, ADMIN]))):
    """Dependency para cajeros"""
    return current_user
