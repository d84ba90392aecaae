"""Cart aggregate: the mutable pre-order container consumed at checkout.

A cart belongs either to an authenticated user (``user_id``) or to a guest
session (``session_id``). Totals are recomputed after every mutation:

    subtotal   = round2(sum(price * quantity))
    tax        = round2((subtotal - discount) * tax_rate)
    total      = round2(max(0, subtotal - discount + tax + shipping))
    item_count = sum(quantity)

``tax_rate`` is a fraction (0.05 for 5%). Guest carts expire seven days after
their last mutation.
"""

from datetime import UTC, datetime, timedelta

from protean import invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, HasMany, Identifier, Integer, String

from commerce.cart.events import CartCleared, CartDiscountApplied, CartItemAdded, CartItemRemoved, CartsMerged
from commerce.domain import commerce
from commerce.errors import BadRequest, NotFound
from commerce.shared.money import round_money
from commerce.shared.tenancy import DEFAULT_TENANT

GUEST_CART_TTL = timedelta(days=7)


@commerce.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier()
    seller_id = Identifier()
    sku = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    image = String(max_length=500)
    price = Float(required=True, min_value=0.0)  # Snapshot at add time
    quantity = Integer(required=True, min_value=1)
    added_at = DateTime()


@commerce.aggregate
class Cart:
    user_id = Identifier()  # Empty for guest carts
    session_id = String(max_length=255)
    tenant_id = String(max_length=100, default=DEFAULT_TENANT)
    items = HasMany(CartItem)
    discount = Float(default=0.0, min_value=0.0)
    discount_code = String(max_length=50)
    tax_rate = Float(default=0.0, min_value=0.0)
    shipping = Float(default=0.0, min_value=0.0)
    subtotal = Float(default=0.0)
    tax = Float(default=0.0)
    total = Float(default=0.0)
    item_count = Integer(default=0)
    currency = String(max_length=3, default="INR")
    expires_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_must_belong_to_user_or_session(self):
        if not self.user_id and not self.session_id:
            raise ValidationError({"cart": ["A cart needs a user or a guest session"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id=None, session_id=None, tenant_id=DEFAULT_TENANT, tax_rate=0.0, currency="INR"):
        now = datetime.now(UTC)
        return cls(
            user_id=user_id,
            session_id=None if user_id else session_id,
            tenant_id=tenant_id,
            tax_rate=tax_rate,
            currency=currency,
            expires_at=None if user_id else now + GUEST_CART_TTL,
            created_at=now,
            updated_at=now,
        )

    @property
    def is_guest(self) -> bool:
        return not self.user_id

    def is_expired(self, as_of=None) -> bool:
        if not self.is_guest or self.expires_at is None:
            return False
        as_of = as_of or datetime.now(UTC)
        return self.expires_at.replace(tzinfo=None) <= as_of.replace(tzinfo=None)

    # -------------------------------------------------------------------
    # Totals
    # -------------------------------------------------------------------
    def recalculate(self):
        subtotal = round_money(sum(item.price * item.quantity for item in self.items))
        discount = round_money(self.discount or 0.0)
        tax = round_money((subtotal - discount) * (self.tax_rate or 0.0))
        if tax < 0:
            tax = 0.0

        self.subtotal = subtotal
        self.tax = tax
        self.total = round_money(max(0.0, subtotal - discount + tax + (self.shipping or 0.0)))
        self.item_count = sum(item.quantity for item in self.items)

    def _touch(self):
        now = datetime.now(UTC)
        self.updated_at = now
        if self.is_guest:
            self.expires_at = now + GUEST_CART_TTL
        self.recalculate()

    def snapshot(self) -> dict:
        """Pricing figures copied onto an order at checkout."""
        return {
            "subtotal": self.subtotal,
            "discount": self.discount or 0.0,
            "discount_code": self.discount_code,
            "tax": self.tax,
            "shipping": self.shipping or 0.0,
            "total": self.total,
            "currency": self.currency,
        }

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def _find_line(self, product_id, variant_id):
        wanted_variant = str(variant_id) if variant_id else None
        return next(
            (
                i
                for i in self.items
                if str(i.product_id) == str(product_id)
                and (str(i.variant_id) if i.variant_id else None) == wanted_variant
            ),
            None,
        )

    def _find_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise NotFound("Cart item")
        return item

    def add_item(self, product_id, sku, name, price, quantity, variant_id=None, seller_id=None, image=None):
        """Add a line, or grow the quantity of an existing line for the same product and variant."""
        if quantity < 1:
            raise BadRequest("Quantity must be at least 1")

        existing = self._find_line(product_id, variant_id)
        if existing is not None:
            existing.quantity += quantity
            existing.price = price
            item_id = str(existing.id)
        else:
            item = CartItem(
                product_id=product_id,
                variant_id=variant_id,
                seller_id=seller_id,
                sku=sku,
                name=name,
                image=image,
                price=price,
                quantity=quantity,
                added_at=datetime.now(UTC),
            )
            self.add_items(item)
            item_id = str(item.id)

        self._touch()

        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=item_id,
                product_id=str(product_id),
                variant_id=str(variant_id) if variant_id else None,
                quantity=quantity,
                price=price,
            )
        )
        return item_id

    def quantity_of(self, product_id, variant_id=None) -> int:
        line = self._find_line(product_id, variant_id)
        return line.quantity if line is not None else 0

    def update_item_quantity(self, item_id, quantity):
        if quantity < 1:
            raise BadRequest("Quantity must be at least 1")
        item = self._find_item(item_id)
        item.quantity = quantity
        self._touch()

    def remove_item(self, item_id):
        item = self._find_item(item_id)
        self.remove_items(item)
        self._touch()

        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    # -------------------------------------------------------------------
    # Discounts and shipping
    # -------------------------------------------------------------------
    def apply_discount(self, code, amount):
        if not self.items:
            raise BadRequest("Cannot apply a discount to an empty cart")
        if amount < 0:
            raise BadRequest("Discount must not be negative")

        self.discount_code = code
        self.discount = round_money(amount)
        self._touch()

        self.raise_(CartDiscountApplied(cart_id=str(self.id), discount_code=code, discount=self.discount))

    def remove_discount(self):
        self.discount_code = None
        self.discount = 0.0
        self._touch()

    def set_shipping(self, amount):
        if amount < 0:
            raise BadRequest("Shipping must not be negative")
        self.shipping = round_money(amount)
        self._touch()

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------
    def merge_from(self, guest_cart):
        """Fold a guest cart's lines into this cart."""
        if self.is_guest:
            raise BadRequest("Only an authenticated cart can absorb a guest cart")

        merged = 0
        for line in list(guest_cart.items):
            existing = self._find_line(line.product_id, line.variant_id)
            if existing is not None:
                existing.quantity += line.quantity
            else:
                self.add_items(
                    CartItem(
                        product_id=line.product_id,
                        variant_id=line.variant_id,
                        seller_id=line.seller_id,
                        sku=line.sku,
                        name=line.name,
                        image=line.image,
                        price=line.price,
                        quantity=line.quantity,
                        added_at=datetime.now(UTC),
                    )
                )
            merged += 1

        self._touch()

        self.raise_(
            CartsMerged(
                cart_id=str(self.id),
                source_session_id=guest_cart.session_id,
                items_merged_count=merged,
            )
        )
        return merged

    def clear(self):
        """Empty the cart and reset the discount. Called once an order is placed."""
        for item in list(self.items):
            self.remove_items(item)
        self.discount = 0.0
        self.discount_code = None
        self._touch()

        self.raise_(CartCleared(cart_id=str(self.id), cleared_at=datetime.now(UTC)))


@commerce.repository(part_of=Cart)
class CartRepository:
    def find_for(self, user_id=None, session_id=None, tenant_id=DEFAULT_TENANT):
        """The open cart for a user or guest session, or None."""
        if user_id:
            carts = self._dao.query.filter(user_id=str(user_id), tenant_id=tenant_id).all().items
        elif session_id:
            carts = self._dao.query.filter(session_id=session_id, tenant_id=tenant_id).all().items
        else:
            return None
        return carts[0] if carts else None

    def guest_carts(self):
        return [cart for cart in self._dao.query.all().items if not cart.user_id and cart.session_id]
