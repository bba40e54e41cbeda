from liga import db  # noqa: F401 - imported for model imports

from .audit_log import AuditLog
from .fixture import Fixture
from .league import Category, League, Zone
from .match import Match
from .payout_settings import PayoutSettings
from .prediction import Prediction
from .standing import Standing, StandingOrder
from .team import Team
from .user import User
from .wallet import Wallet, WalletTransaction

__all__ = [
    "User",
    "League",
    "Category",
    "Zone",
    "Team",
    "Fixture",
    "Match",
    "Prediction",
    "PayoutSettings",
    "Standing",
    "StandingOrder",
    "Wallet",
    "WalletTransaction",
    "AuditLog",
]
