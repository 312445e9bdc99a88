from .foundation import Outlet, User
from .customers import Customer, CustomerVehicle
from .inventory import Category, Supplier, UnitType, Product, ProductSerialNumber
from .services import ServiceCategory, Service, ServiceCodeSequence, ServiceJob, ServiceDetail, ServiceJobHistory
from .vehicles import Vehicle, VehiclePurchaseTransaction, VehicleReconditioningJob, ReconditioningDetail
from .sales import VehicleSalesTransaction, VehicleInstallment, InstallmentPayment
from .financial import CashFlow
from .transactions import PaymentMethod, InvoiceSequence, PosTransaction, TransactionDetail, Payment

__all__ = [
    'Outlet', 'User',
    'Customer', 'CustomerVehicle',
    'Category', 'Supplier', 'UnitType', 'Product', 'ProductSerialNumber',
    'ServiceCategory', 'Service', 'ServiceCodeSequence', 'ServiceJob', 'ServiceDetail', 'ServiceJobHistory',
    'Vehicle', 'VehiclePurchaseTransaction', 'VehicleReconditioningJob', 'ReconditioningDetail',
    'VehicleSalesTransaction', 'VehicleInstallment', 'InstallmentPayment',
    'CashFlow',
    'PaymentMethod', 'InvoiceSequence', 'PosTransaction', 'TransactionDetail', 'Payment',
]
