"""Models package."""

from .customer import Customer
from .vendor import Vendor, VendorService
from .vendor_transaction import VendorTransaction
from .credit_balance import CreditBalance
from .subscription import Subscription
from .business_transaction import BusinessTransaction
