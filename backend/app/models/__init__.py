from .outlets import Outlet
from .staff import Staff, StaffOutletAccess, SessionToken
from .inventory import (
    InventoryItem, Purchase, Product, ProductBomLine,
    Recipe, RecipeComponent, ProductionRecord, ProductionComponent,
)
from .sales import Transaction, TransactionLine
from .transfers import StockTransfer
from .expenses import ExpenseType, Expense
from .timekeeping import Attendance
from .closings import DailyClosing
from .sync import SyncOutboxEntry

__all__ = [
    'Outlet',
    'Staff', 'StaffOutletAccess', 'SessionToken',
    'InventoryItem', 'Purchase', 'Product', 'ProductBomLine',
    'Recipe', 'RecipeComponent', 'ProductionRecord', 'ProductionComponent',
    'Transaction', 'TransactionLine',
    'StockTransfer',
    'ExpenseType', 'Expense',
    'Attendance',
    'DailyClosing',
    'SyncOutboxEntry',
]
