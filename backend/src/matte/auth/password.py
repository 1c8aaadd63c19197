"""Password hashing service."""

from passlib.context import CryptContext


class PasswordService:
    """Service for hashing and verifying passwords.

    Uses passlib's CryptContext with PBKDF2-SHA256, which needs no native
    backend, and automatic salt generation.
    """

    def __init__(self, rounds: int = 29000):
        """Initialize the password service.

        Args:
            rounds: PBKDF2 iteration count (higher = slower + more secure)
        """
        self._context = CryptContext(
            schemes=["pbkdf2_sha256"],
            deprecated="auto",
            pbkdf2_sha256__rounds=rounds,
        )

    def hash(self, password: str) -> str:
        """Hash a password.

        Returns:
            Modular-crypt hash string (includes algorithm, rounds, salt, and hash)
        """
        return self._context.hash(password)

    def verify(self, password: str, hash: str) -> bool:
        """Verify a password against a hash. Malformed hashes never verify."""
        try:
            return self._context.verify(password, hash)
        except (ValueError, TypeError):
            return False

    def needs_rehash(self, hash: str) -> bool:
        """Check if a hash was produced with outdated settings."""
        return self._context.needs_update(hash)
