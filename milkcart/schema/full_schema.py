import enum
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from sqlalchemy import JSON, BigInteger, Boolean, CheckConstraint, Date, ForeignKey, Index, Integer, Text, UniqueConstraint, Uuid, text
from uuid6 import uuid7
from sqlmodel import Column, SQLModel, Field, Relationship, String
from milkcart.common.utils import now
from milkcart.db.types import UTCDateTime

# ---------------------------------------------------------------------------------------------
# enums (stored as their string value)

class AccountRole(str, enum.Enum):
    BUYER = "buyer"
    ADMIN = "admin"
    DELIVERY = "delivery"


class DeliveryShift(str, enum.Enum):
    MORNING = "morning"
    EVENING = "evening"


class DeliveryPersonShift(str, enum.Enum):
    MORNING = "morning"
    EVENING = "evening"
    BOTH = "both"


class ApprovalStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, enum.Enum):
    COD = "cod"
    UPI = "upi"
    WALLET = "wallet"


class CancelledBy(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"


class VerificationStatus(str, enum.Enum):
    AWAITING_SUBMISSION = "awaiting_submission"
    SUBMITTED = "submitted"
    VERIFIED = "verified"
    REJECTED = "rejected"
    # withdrawn before submission because something it covered was cancelled
    CANCELLED = "cancelled"
    # never stored, derived when expires_at has passed without a decision
    EXPIRED = "expired"


class MilkType(str, enum.Enum):
    COW = "cow"
    BUFFALO = "buffalo"


class PlanVolume(str, enum.Enum):
    ONE_LITRE = "1L"
    TWO_LITRE = "2L"
    THREE_LITRE = "3L"
    FIVE_LITRE = "5L"


class SubscriptionStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLATION_REQUESTED = "cancellation_requested"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    EXPIRED = "expired"


class SubscriptionPaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"
    REFUNDED = "refunded"


class PreferredDeliveryTime(str, enum.Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"


class RefundMethod(str, enum.Enum):
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"


class RefundStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"
    COMPLETED = "completed"


# ---------------------------------------------------------------------------------------------
# accounts

class Users(SQLModel, table=True):
    """Buyers and admins. Credentials live with the external identity provider."""
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)
    )
    email: Optional[str] = Field(default=None, sa_column=Column(String(320), nullable=True, unique=True))
    name: Optional[str] = Field(default=None, sa_column=Column(String(128), nullable=True))
    phone: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True))
    role: str = Field(default=AccountRole.BUYER.value, sa_column=Column(String(16), nullable=False, default=AccountRole.BUYER.value))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))


class DeliveryPerson(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)
    )
    name: str = Field(sa_column=Column(String(128), nullable=False))
    phone: str = Field(sa_column=Column(String(20), nullable=False, unique=True))
    email: Optional[str] = Field(default=None, sa_column=Column(String(320), nullable=True))
    vehicle_number: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    delivery_shift: str = Field(default=DeliveryPersonShift.BOTH.value, sa_column=Column(String(16), nullable=False))
    approval_status: str = Field(default=ApprovalStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    is_suspended: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    suspension_reason: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    total_deliveries: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    approved_by: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True))
    approved_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))

    @property
    def can_login(self) -> bool:
        return self.approval_status == ApprovalStatus.APPROVED.value and not self.is_suspended


# Buyer --> DeliveryPerson standing assignment ; at most one active row per buyer
class UserDeliveryAssignment(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)
    )
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    delivery_person_id: int = Field(sa_column=Column(Integer, ForeignKey("deliveryperson.id", ondelete="CASCADE"), index=True, nullable=False))
    assigned_by: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True))
    # empty means every shift
    delivery_shifts: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    deactivated_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))

    __table_args__ = (
        Index("uq_userdeliveryassignment_active_user", "user_id", unique=True,
              postgresql_where=text("is_active"), sqlite_where=text("is_active")),
    )


# ---------------------------------------------------------------------------------------------
# catalog & cart

class Product(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(
        default_factory=uuid7,
        sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False)
    )
    name: str = Field(sa_column=Column(String(255), nullable=False, unique=True))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    category: str = Field(default="milk", sa_column=Column(String(64), nullable=False, index=True))
    unit: str = Field(default="1L", sa_column=Column(String(32), nullable=False))
    price: int = Field(sa_column=Column(BigInteger, nullable=False))  # whole rupees
    discount_price: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    stock_qty: int = Field(default=0, sa_column=Column(Integer, nullable=False))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))

    __table_args__ = (
        CheckConstraint("stock_qty >= 0", name="ck_product_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_product_price_non_negative"),
    )

    @property
    def effective_price(self) -> int:
        return self.discount_price if self.discount_price is not None else self.price


class Cart(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))

    items: List["CartItem"] = Relationship(back_populates="cart", sa_relationship_kwargs={"cascade": "all, delete-orphan"})


class CartItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    cart_id: int = Field(sa_column=Column(Integer, ForeignKey("cart.id", ondelete="CASCADE"), index=True, nullable=False))
    product_id: int = Field(sa_column=Column(Integer, ForeignKey("product.id", ondelete="CASCADE"), index=True, nullable=False))
    quantity: int = Field(default=1, sa_column=Column(Integer, nullable=False, default=1))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(UTCDateTime(), nullable=False, default=now))

    cart: Optional["Cart"] = Relationship(back_populates="items")

    __table_args__ = (UniqueConstraint("cart_id", "product_id", name="uq_cartitem_cart_product"),)


# ---------------------------------------------------------------------------------------------
# orders

class Orders(SQLModel, table=True):

    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    order_number: str = Field(sa_column=Column(String(32), unique=True, nullable=False))
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False))

    status: str = Field(default=OrderStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    payment_status: str = Field(default=PaymentStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    payment_method: str = Field(sa_column=Column(String(16), nullable=False))

    # amounts in whole rupees ; written once at creation
    subtotal: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    shipping_fee: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    tax: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    discount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))
    total_amount: int = Field(default=0, sa_column=Column(BigInteger, nullable=False))

    shipping_address: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    delivery_date: date = Field(sa_column=Column(Date, nullable=False, index=True))
    delivery_shift: str = Field(sa_column=Column(String(16), nullable=False))

    customer_notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    admin_notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    cancellation_reason: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    cancelled_by: Optional[str] = Field(default=None, sa_column=Column(String(16), nullable=True))

    delivery_person_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("deliveryperson.id", ondelete="SET NULL"), index=True, nullable=True))
    assigned_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    delivery_notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))

    # claim held by a live payment session
    payment_session_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("paymentsession.id", ondelete="SET NULL"), index=True, nullable=True))
    claim_expires_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))

    created_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))
    confirmed_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    delivered_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    paid_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))

    items: List["OrderItem"] = Relationship(back_populates="order", sa_relationship_kwargs={"cascade": "all, delete-orphan", "lazy": "selectin"})

    __table_args__ = (
        CheckConstraint("total_amount = subtotal + shipping_fee + tax - discount", name="ck_orders_total_reconciles"),
    )


# Order --> OrderItems (1:many) ; name and price are snapshots taken at order time
class OrderItem(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: int = Field(sa_column=Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False))
    product_id: int = Field(sa_column=Column(Integer, ForeignKey("product.id", ondelete="RESTRICT"), index=True, nullable=False))
    product_public_id: Optional[uuid.UUID] = Field(default=None, sa_column=Column(Uuid(as_uuid=True), nullable=True))
    product_name: str = Field(sa_column=Column(String(255), nullable=False))
    unit_price: int = Field(sa_column=Column(BigInteger, nullable=False))
    quantity: int = Field(sa_column=Column(Integer, nullable=False))
    line_total: int = Field(sa_column=Column(BigInteger, nullable=False))

    order: Optional["Orders"] = Relationship(back_populates="items")

    __table_args__ = (CheckConstraint("quantity > 0", name="ck_orderitem_quantity_positive"),)


# ---------------------------------------------------------------------------------------------
# subscriptions

class SubscriptionPlan(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    name: str = Field(sa_column=Column(String(128), nullable=False))
    milk_type: str = Field(sa_column=Column(String(16), nullable=False, index=True))
    volume: str = Field(sa_column=Column(String(8), nullable=False))
    duration_days: int = Field(sa_column=Column(Integer, nullable=False))
    price: int = Field(sa_column=Column(BigInteger, nullable=False))
    daily_price: int = Field(sa_column=Column(BigInteger, nullable=False))
    discount: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))  # percent
    original_price: Optional[int] = Field(default=None, sa_column=Column(BigInteger, nullable=True))
    features: List[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False, default=list))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    popularity: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True, index=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))

    __table_args__ = (
        CheckConstraint("discount >= 0 AND discount <= 100", name="ck_plan_discount_range"),
        CheckConstraint("duration_days IN (7, 15, 30)", name="ck_plan_duration"),
    )


class UserSubscription(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False))
    plan_id: int = Field(sa_column=Column(Integer, ForeignKey("subscriptionplan.id", ondelete="RESTRICT"), index=True, nullable=False))

    status: str = Field(default=SubscriptionStatus.PENDING.value, sa_column=Column(String(32), nullable=False, index=True))
    payment_status: str = Field(default=SubscriptionPaymentStatus.PENDING.value, sa_column=Column(String(16), nullable=False))
    payment_method: str = Field(default=PaymentMethod.UPI.value, sa_column=Column(String(16), nullable=False))
    total_amount: int = Field(sa_column=Column(BigInteger, nullable=False))

    start_date: date = Field(sa_column=Column(Date, nullable=False))
    end_date: date = Field(sa_column=Column(Date, nullable=False, index=True))
    next_delivery_date: Optional[date] = Field(default=None, sa_column=Column(Date, nullable=True, index=True))
    total_deliveries: int = Field(sa_column=Column(Integer, nullable=False))
    completed_deliveries: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    skipped_deliveries: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    delivery_address: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
    preferred_delivery_time: str = Field(default=PreferredDeliveryTime.MORNING.value, sa_column=Column(String(16), nullable=False))
    special_instructions: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))

    # claim held by a live payment session (no FK, paymentsession already references this table)
    payment_session_id: Optional[int] = Field(default=None, sa_column=Column(Integer, index=True, nullable=True))
    claim_expires_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    paid_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))

    cancellation_reason: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))

    __table_args__ = (
        CheckConstraint("completed_deliveries + skipped_deliveries <= total_deliveries", name="ck_usersub_delivery_counters"),
    )


class SubscriptionHistory(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    subscription_id: int = Field(sa_column=Column(Integer, ForeignKey("usersubscription.id", ondelete="CASCADE"), index=True, nullable=False))
    action: str = Field(sa_column=Column(String(32), nullable=False))
    from_status: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    to_status: Optional[str] = Field(default=None, sa_column=Column(String(32), nullable=True))
    actor: str = Field(default="system", sa_column=Column(String(16), nullable=False))
    reason: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    created_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now))


# ---------------------------------------------------------------------------------------------
# payments

class PaymentSession(SQLModel, table=True):
    """Time-boxed manual UPI payment claim over orders or one subscription."""
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    reference_number: str = Field(sa_column=Column(String(32), unique=True, nullable=False))
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False))
    subscription_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("usersubscription.id", ondelete="SET NULL"), index=True, nullable=True))

    total_amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    currency: str = Field(default="INR", sa_column=Column(String(8), nullable=False))
    upi_id: str = Field(sa_column=Column(String(128), nullable=False))
    upi_name: str = Field(sa_column=Column(String(128), nullable=False))
    qr_code_url: str = Field(sa_column=Column(Text(), nullable=False))

    verification_status: str = Field(default=VerificationStatus.AWAITING_SUBMISSION.value, sa_column=Column(String(32), nullable=False, index=True))
    upi_transaction_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    upi_reference_number: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))

    expires_at: datetime = Field(sa_column=Column(UTCDateTime(), nullable=False, index=True))
    submitted_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    verified_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    verified_by: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))

    created_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))

    order_links: List["PaymentSessionOrder"] = Relationship(back_populates="payment_session", sa_relationship_kwargs={"lazy": "selectin"})


class PaymentSessionOrder(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    payment_session_id: int = Field(sa_column=Column(Integer, ForeignKey("paymentsession.id", ondelete="CASCADE"), index=True, nullable=False))
    order_id: int = Field(sa_column=Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), index=True, nullable=False))
    amount: int = Field(sa_column=Column(BigInteger, nullable=False))

    payment_session: Optional["PaymentSession"] = Relationship(back_populates="order_links")

    __table_args__ = (UniqueConstraint("payment_session_id", "order_id", name="uq_paymentsessionorder_session_order"),)


# ---------------------------------------------------------------------------------------------
# refunds

class RefundRequest(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    public_id: uuid.UUID = Field(default_factory=uuid7, sa_column=Column(Uuid(as_uuid=True), unique=True, index=True, nullable=False))
    user_id: int = Field(sa_column=Column(Integer, ForeignKey("users.id", ondelete="RESTRICT"), index=True, nullable=False))
    subscription_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("usersubscription.id", ondelete="SET NULL"), index=True, nullable=True))
    order_id: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("orders.id", ondelete="SET NULL"), index=True, nullable=True))

    original_amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    refund_amount: int = Field(sa_column=Column(BigInteger, nullable=False))
    days_used: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    days_remaining: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    reason: str = Field(sa_column=Column(Text(), nullable=False))

    refund_method: str = Field(sa_column=Column(String(16), nullable=False))
    refund_details: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    status: str = Field(default=RefundStatus.PENDING.value, sa_column=Column(String(16), nullable=False, index=True))
    admin_notes: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    processed_by: Optional[int] = Field(default=None, sa_column=Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True))
    processed_at: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))
    refund_transaction_id: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    refund_date: Optional[datetime] = Field(default=None, sa_column=Column(UTCDateTime(), nullable=True))

    created_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now, sa_column=Column(UTCDateTime(), nullable=False, default=now, onupdate=now))

    __table_args__ = (
        CheckConstraint("subscription_id IS NOT NULL OR order_id IS NOT NULL", name="ck_refund_has_target"),
    )
