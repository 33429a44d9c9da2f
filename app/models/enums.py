# app/models/enums.py
import enum


class UserTier(str, enum.Enum):
    FREE = "free"
    PAID = "paid"


class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    TRIALING = "trialing"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    INCOMPLETE_EXPIRED = "incomplete_expired"


# Statuses that grant paid access regardless of the stored tier
PAID_SUBSCRIPTION_STATUSES = {SubscriptionStatus.ACTIVE.value, SubscriptionStatus.TRIALING.value}


class TransactionType(str, enum.Enum):
    USAGE = "usage"
    SUBSCRIPTION = "subscription"
    DAILY = "daily"
    TOPUP = "topup"
    ADJUSTMENT = "adjustment"


class AccessReason(str, enum.Enum):
    USING_OWN_KEY = "using-own-key"
    USING_CREDITS = "using-credits"
    NEEDS_UPGRADE = "needs-upgrade"
