from .catalog import Route, Vessel, BoardingPort, VesselRoute
from .customers import Customer
from .auth import User, SessionToken
from .sales import Sale, Cancellation
from .boarding import BoardingControl
from .settings import Setting
from .documents import DocumentSequence, SaleEvent

__all__ = [
    'Route', 'Vessel', 'BoardingPort', 'VesselRoute',
    'Customer',
    'User', 'SessionToken',
    'Sale', 'Cancellation',
    'BoardingControl',
    'Setting',
    'DocumentSequence', 'SaleEvent',
]
