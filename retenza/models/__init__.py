"""
Database models for Retenza platform.
Businesses, customers, loyalty programs, missions and notifications.
"""
from .business import Business
from .customer import Customer
from .loyalty import LoyaltyProgram, CustomerLoyalty
from .transaction import Transaction, RewardRedemption
from .mission import Mission, MissionRegistry, MissionStatus
from .notification import Notification, PushSubscription
from .session import Session

__all__ = [
    'Business',
    'Customer',
    'LoyaltyProgram',
    'CustomerLoyalty',
    'Transaction',
    'RewardRedemption',
    'Mission',
    'MissionRegistry',
    'MissionStatus',
    'Notification',
    'PushSubscription',
    'Session',
]
