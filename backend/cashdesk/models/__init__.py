from .tenancy import Store
from .auth import User, Role, UserRole, Permission, RolePermission
from .security import SecurityEvent
from .registers import RegisterSession, LedgerEntry, EntryType, PaymentMethod, ClosedSessionImmutableError
from .sales import SalesChannel, CounterSale, DeliveryOrder, TableSale

__all__ = [
    'Store',
    'User', 'Role', 'UserRole', 'Permission', 'RolePermission',
    'SecurityEvent',
    'RegisterSession', 'LedgerEntry', 'EntryType', 'PaymentMethod', 'ClosedSessionImmutableError',
    'SalesChannel', 'CounterSale', 'DeliveryOrder', 'TableSale',
]
