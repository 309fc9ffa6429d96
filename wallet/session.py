from dataclasses import dataclass, field

from .auth import UserCredential
from .ledger import Ledger
from .models import UserProfile


@dataclass
class UserSession:
    """Per-user context handed to each redemption workflow."""

    profile: UserProfile
    credential: UserCredential
    ledger: Ledger = field(default_factory=Ledger)

    @property
    def user_id(self) -> str:
        return self.profile.user_id
