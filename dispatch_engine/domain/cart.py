"""
Cart aggregation.

The raw cart is a list of lines that may mention the same product more
than once.  ``Cart.groups()`` folds them into one entry per product id;
the grouping is rebuilt on every call and never stored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from .entities import LineItem

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Product:
    id: str
    name: str
    price: float


@dataclass
class CartLine:
    product: Product
    quantity: int = 1


@dataclass
class CartGroup:
    product: Product
    quantity: int

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity

    def to_line_item(self) -> LineItem:
        return LineItem(
            product_id=self.product.id,
            quantity=self.quantity,
            unit_price=self.product.price,
        )


class Cart:
    def __init__(self, lines: Optional[list[CartLine]] = None):
        self.lines: list[CartLine] = list(lines or [])

    def add(self, product: Product) -> None:
        for line in self.lines:
            if line.product.id == product.id:
                line.quantity += 1
                return
        self.lines.append(CartLine(product, 1))

    def remove(self, product: Product) -> None:
        for i, line in enumerate(self.lines):
            if line.product.id == product.id:
                if line.quantity > 1:
                    line.quantity -= 1
                else:
                    del self.lines[i]
                return
        logger.warning("Product %s is not in the cart", product.id)

    def empty(self) -> None:
        self.lines.clear()

    @property
    def is_empty(self) -> bool:
        return not self.lines

    def groups(self) -> dict[str, CartGroup]:
        grouped: dict[str, CartGroup] = {}
        for line in self.lines:
            group = grouped.get(line.product.id)
            if group is None:
                grouped[line.product.id] = CartGroup(line.product, line.quantity)
            else:
                group.quantity += line.quantity
        return grouped

    @property
    def subtotal(self) -> float:
        return round(sum(g.line_total for g in self.groups().values()), 2)

    def line_items(self) -> tuple[LineItem, ...]:
        return tuple(g.to_line_item() for g in self.groups().values())
