from datetime import date, datetime, timezone
from enum import Enum

from sqlmodel import Field, Relationship, SQLModel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OrderStatus(str, Enum):
    pending_payment = "pending_payment"
    payment_submitted = "payment_submitted"
    verified = "verified"
    rejected = "rejected"
    preparing = "preparing"
    ready = "ready"
    completed = "completed"
    cancelled = "cancelled"


class Role(str, Enum):
    admin = "admin"
    kitchen = "kitchen"


class User(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    username: str = Field(unique=True, index=True)
    hashed_password: str
    full_name: str | None = None
    role: Role = Field(default=Role.kitchen)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow)


class MenuItem(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    name: str
    category: str = Field(index=True)  # "Breakfast", "Lunch", "Snacks", "Beverages"
    description: str = ""
    price_cents: int
    image: str = ""  # URL
    is_available: bool = Field(default=True, index=True)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class CanteenSettings(SQLModel, table=True):
    """Singleton row; the first record is the live configuration."""
    id: int | None = Field(default=None, primary_key=True)
    canteen_name: str
    upi_id: str
    upi_qr_code: str = ""  # Image URL or data URI shown on the payment screen
    contact_phone: str = ""
    updated_at: datetime = Field(default_factory=utcnow)


class OrderCounter(SQLModel, table=True):
    """Last sequence number handed out per calendar day (see order_ids)."""
    day: date = Field(primary_key=True)
    last_seq: int = Field(default=0)


class Order(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    order_id: str = Field(unique=True, index=True)  # ORD<YYYYMMDD><seq3>
    student_name: str
    student_phone: str = Field(index=True)
    total_cents: int  # Computed once at creation from the item snapshots
    special_instructions: str = ""
    status: OrderStatus = Field(default=OrderStatus.pending_payment, index=True)

    # Payment details, filled in as the order moves through verification
    payment_upi_id: str = ""  # Snapshot of the canteen UPI id at creation
    payment_proof: str = ""  # Free text from the student (e.g. UPI transaction ref)
    verified_by: str = ""
    verification_time: datetime | None = None
    rejection_reason: str = ""

    created_at: datetime = Field(default_factory=utcnow, index=True)
    updated_at: datetime = Field(default_factory=utcnow)

    items: list["OrderItem"] = Relationship(back_populates="order")


class OrderItem(SQLModel, table=True):
    id: int | None = Field(default=None, primary_key=True)
    order_pk: int = Field(foreign_key="order.id", index=True)
    menu_item_id: int  # Reference only, the menu item may change or disappear later
    name: str  # Snapshot of item name at order time
    price_cents: int  # Snapshot of price at order time
    quantity: int

    order: Order = Relationship(back_populates="items")


# Request/Response Models
class OrderItemCreate(SQLModel):
    menu_item_id: int
    quantity: int = Field(ge=1)


class OrderCreate(SQLModel):
    student_name: str
    student_phone: str
    items: list[OrderItemCreate]
    special_instructions: str | None = None


class PaymentSubmit(SQLModel):
    payment_proof: str | None = None


class VerificationAction(str, Enum):
    approve = "approve"
    reject = "reject"


class PaymentVerification(SQLModel):
    action: VerificationAction
    rejection_reason: str | None = None


class OrderStatusUpdate(SQLModel):
    # Plain string so unknown values reach the transition table and get a proper error
    status: str


class MenuItemCreate(SQLModel):
    name: str
    category: str
    description: str
    price_cents: int = Field(ge=0)
    image: str | None = None
    is_available: bool = True


class MenuItemUpdate(SQLModel):
    name: str | None = None
    category: str | None = None
    description: str | None = None
    price_cents: int | None = Field(default=None, ge=0)
    image: str | None = None
    is_available: bool | None = None


class SettingsUpdate(SQLModel):
    canteen_name: str | None = None
    upi_id: str | None = None
    upi_qr_code: str | None = None
    contact_phone: str | None = None


class UserRead(SQLModel):
    id: int
    username: str
    full_name: str | None
    role: Role
