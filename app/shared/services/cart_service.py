# app/shared/services/cart_service.py
from typing import Any, Dict, List

from sqlalchemy.orm import Session

from app.core.exceptions import NotFoundError
from app.shared.database.models import Cart, CartLine


class CartService:
    """Lectura del carrito para el checkout"""

    def __init__(self, db: Session):
        self.db = db

    def get_cart_lines(self, cart_id: str) -> List[Dict[str, Any]]:
        """
        Obtener las líneas del carrito agrupadas por producto.

        Raises:
            NotFoundError: Si el carrito no existe
        """
        cart = self.db.query(Cart).filter(Cart.id == cart_id).first()
        if not cart:
            raise NotFoundError("Carrito no encontrado")

        quantities: Dict[str, int] = {}
        for line in cart.lines:
            quantities[line.product_id] = quantities.get(line.product_id, 0) + line.quantity

        return [
            {"product_id": product_id, "quantity": quantity}
            for product_id, quantity in quantities.items()
        ]

    def clear_cart(self, cart_id: str) -> int:
        """Vaciar el carrito dentro de la transacción actual (sin commit)"""
        return self.db.query(CartLine).filter(
            CartLine.cart_id == cart_id
        ).delete(synchronize_session="fetch")
