"""Wire every entity service to one document store."""

from .ims_sync import ImsSyncService
from .inventory import CategoryService, InventoryService
from .orders import OrderService, ShipmentService
from .parties import CustomerService, SupplierService
from .payments import CashBankService, PaymentService
from .purchasing import PurchaseOrderService
from .sales import SalesOrderService
from .users import UserService


class Services:
    """Entity services sharing one store.

    ``records`` maps the URL name of each CRUD collection to its service;
    the API registers the generic routes from it.
    """

    def __init__(self, store, ims_sync_on_delivery=False):
        self.store = store
        self.inventory = InventoryService(store)
        self.categories = CategoryService(store)
        self.suppliers = SupplierService(store)
        self.customers = CustomerService(store)
        self.orders = OrderService(store)
        self.shipments = ShipmentService(store)
        self.purchase_orders = PurchaseOrderService(store, inventory=self.inventory)
        self.ims_sync = ImsSyncService(store)
        self.sales_orders = SalesOrderService(store, ims_sync=self.ims_sync if ims_sync_on_delivery else None)
        self.cash_bank = CashBankService(store)
        self.payments = PaymentService(store)
        self.users = UserService(store)

        self.records = {
            'inventory': self.inventory,
            'suppliers': self.suppliers,
            'customers': self.customers,
            'orders': self.orders,
            'shipments': self.shipments,
            'purchase-orders': self.purchase_orders,
            'sales-orders': self.sales_orders,
            'cash-bank': self.cash_bank,
            'payments': self.payments,
        }

    def dashboard(self):
        return {
            'inventory': self.inventory.summary(),
            'purchaseOrders': self.purchase_orders.stats(),
            'salesOrders': self.sales_orders.stats(),
            'cashBank': self.cash_bank.summary(),
            'payments': self.payments.summary(),
            'counts': {
                'suppliers': len(self.suppliers.list(archived='exclude')),
                'customers': len(self.customers.list(archived='exclude')),
                'orders': len(self.orders.list(archived='exclude')),
                'shipments': len(self.shipments.list(archived='exclude')),
            },
        }
