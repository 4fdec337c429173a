"""CREDENTIAL SERVICE"""

import logging

from werkzeug.security import check_password_hash, generate_password_hash

logger = logging.getLogger(__name__)

# Verified against when the identifier does not resolve so that unknown
# accounts cost the same hashing time as known ones.
_DUMMY_HASH = generate_password_hash("pncapi-dummy-credential")


class CredentialService:
    """Verifies submitted passwords against stored salted hashes"""

    @staticmethod
    def verify(user, password):
        """Check a password for the lockout flow.

        Identities from an external identity provider have no local hash.
        Verification is bypassed for them and reported as successful, so they
        never build up password-failure lockouts through this path.
        """
        if not user.has_local_credential:
            logger.debug(
                f"[AUTH]: {user.email} authenticates via {user.auth_provider}, "
                "skipping local password check"
            )
            return True

        if not password:
            return False

        try:
            # check_password_hash compares digests with hmac.compare_digest
            return check_password_hash(user.password, password)
        except ValueError as e:
            logger.error(f"Invalid password hash for user {user.email}: {e}")
            return False

    @staticmethod
    def burn_time(password):
        """Run a throwaway hash comparison for an unknown identifier."""
        check_password_hash(_DUMMY_HASH, password or "")
        return False
