# Plain string values are what gets stored in the status columns.

class Roles:
    USER = "USER"              # customer
    SUB_ADMIN = "SUB_ADMIN"    # service provider
    SUPER_ADMIN = "SUPER_ADMIN"

    ALL = (USER, SUB_ADMIN, SUPER_ADMIN)


class PaymentStatus:
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"

    ALL = (PENDING, SUCCESS, FAILED, REFUNDED)


class BookingStatus:
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no-show"

    ALL = (SCHEDULED, COMPLETED, CANCELLED, NO_SHOW)


class SessionStatus:
    SCHEDULED = "scheduled"
    ONGOING = "ongoing"
    COMPLETED = "completed"

    ALL = (SCHEDULED, ONGOING, COMPLETED)


class PaymentMethod:
    STRIPE = "stripe"
    PAYPAL = "paypal"
    RAZORPAY = "razorpay"
    OTHER = "other"

    ALL = (STRIPE, PAYPAL, RAZORPAY, OTHER)
