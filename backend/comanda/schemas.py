"""Order snapshot read by the print pipeline.

The order-management side owns these records; the print pipeline only reads
them. Field names follow Python conventions but the camelCase keys used by
the order store are accepted too (``customerName``, ``pizzaDetail``...).
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

OrderType = Literal["mesa", "entrega", "retirada"]
PaymentMethod = Literal["dinheiro", "pix", "cartao", "outros"]
JobKind = Literal["kitchen", "delivery"]


class _Snapshot(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Addon(_Snapshot):
    name: str
    price: Decimal = Decimal("0")


class Product(_Snapshot):
    name: str
    price: Decimal = Decimal("0")
    category_id: str = ""
    category_name: Optional[str] = None


class PizzaFlavor(_Snapshot):
    name: str
    removed_ingredients: List[str] = Field(default_factory=list)
    observation: Optional[str] = None


class PizzaDetail(_Snapshot):
    size_name: str
    flavors: List[PizzaFlavor] = Field(default_factory=list)
    border_name: Optional[str] = None


class OrderItem(_Snapshot):
    quantity: int = 1
    product: Product
    selected_addons: List[Addon] = Field(default_factory=list)
    observation: Optional[str] = None
    pizza_detail: Optional[PizzaDetail] = None

    @property
    def unit_price(self) -> Decimal:
        return self.product.price + sum((a.price for a in self.selected_addons), Decimal("0"))

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class Neighborhood(_Snapshot):
    name: str
    fee: Decimal = Decimal("0")


class OrderSnapshot(_Snapshot):
    id: str
    number: int
    type: OrderType
    created_at: datetime
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    items: List[OrderItem] = Field(default_factory=list)
    table_number: Optional[int] = None
    table_reference: Optional[str] = None
    address: Optional[str] = None
    address_number: Optional[str] = None
    reference: Optional[str] = None
    neighborhood: Optional[Neighborhood] = None
    observation: Optional[str] = None
    subtotal: Decimal = Decimal("0")
    delivery_fee: Decimal = Decimal("0")
    total: Decimal = Decimal("0")
    payment_method: Optional[PaymentMethod] = None
    change_for: Optional[Decimal] = None


def _filled(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def is_delivery_details_filled(order: OrderSnapshot) -> bool:
    """Return whether ``order`` carries what a delivery summary needs.

    entrega: customer name, phone, address, neighborhood name, payment method.
    retirada: customer name and payment method.
    Table orders have nothing to check.
    """
    if order.type == "entrega":
        return (
            _filled(order.customer_name)
            and _filled(order.customer_phone)
            and _filled(order.address)
            and order.neighborhood is not None
            and _filled(order.neighborhood.name)
            and order.payment_method is not None
        )
    if order.type == "retirada":
        return _filled(order.customer_name) and order.payment_method is not None
    return True
