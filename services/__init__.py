"""Services package - Business logic layer"""

from services.settings_service import SettingsService
from services.credit_ledger import CreditLedger
from services.snapshot_service import SnapshotService
from services.skip_service import SkipService, SkipStatus, SkipOutcome
from services.fulfillment_service import FulfillmentService, FulfillmentResult
from services.day_service import DayService
from services.kitchen_service import KitchenService
from services.courier_service import CourierService
from services.payment_service import PaymentService
from services.billing_service import BillingService
from services.automation_service import AutomationService
from services.notification_service import NotificationService

# Note: validation and payment_effects contain module-level functions, not a class

__all__ = [
    "SettingsService",
    "CreditLedger",
    "SnapshotService",
    "SkipService",
    "SkipStatus",
    "SkipOutcome",
    "FulfillmentService",
    "FulfillmentResult",
    "DayService",
    "KitchenService",
    "CourierService",
    "PaymentService",
    "BillingService",
    "AutomationService",
    "NotificationService",
]
