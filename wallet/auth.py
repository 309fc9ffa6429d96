import hashlib
import hmac
import secrets
from dataclasses import dataclass, field

DEFAULT_ITERATIONS = 100_000


def _derive(secret: str, salt: bytes, iterations: int) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", secret.encode("utf-8"), salt, iterations)


@dataclass(frozen=True)
class UserCredential:
    """Salted PBKDF2-SHA256 hash of a user's PIN. The plain secret is never kept."""

    user_id: str
    secret_hash: bytes = field(repr=False)
    salt: bytes = field(repr=False)
    iterations: int = DEFAULT_ITERATIONS

    @classmethod
    def create(cls, user_id: str, secret: str, iterations: int = DEFAULT_ITERATIONS) -> "UserCredential":
        salt = secrets.token_bytes(16)
        return cls(
            user_id=user_id,
            secret_hash=_derive(secret, salt, iterations),
            salt=salt,
            iterations=iterations,
        )

    def verify(self, candidate: str) -> bool:
        return verify(candidate, self)


def verify(candidate_secret: str, credential: UserCredential) -> bool:
    """Constant-time check of a candidate secret against a stored credential."""
    if not isinstance(candidate_secret, str):
        return False
    candidate_hash = _derive(candidate_secret, credential.salt, credential.iterations)
    return hmac.compare_digest(candidate_hash, credential.secret_hash)
