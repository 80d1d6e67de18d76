from .proposals import Proposal
from .auth import AdminUser, AdminSession

__all__ = [
    'Proposal',
    'AdminUser', 'AdminSession',
]
