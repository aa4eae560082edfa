from typing import Dict, Tuple

from pymongo.errors import DuplicateKeyError

from .config import Settings
from .errors import InvalidCredential, NotFound, ValidationError
from .passwords import hash_password, verify_password
from .store import AdminStore
from .users import normalize_email


class AdminService:
    def __init__(self, settings: Settings, admins: AdminStore, tokens, logger):
        self.settings = settings
        self.admins = admins
        self.tokens = tokens
        self.logger = logger

    def provision(self) -> Tuple[Dict, bool]:
        """Create the configured admin account once. Returns ``(admin, created)``."""
        email = normalize_email(self.settings.admin_email)
        existing = self.admins.find_by_email(email)
        if existing:
            return existing, False

        try:
            admin = self.admins.insert(
                {
                    "email": email,
                    "password": hash_password(
                        self.settings.admin_password, self.settings.bcrypt_rounds
                    ),
                }
            )
        except DuplicateKeyError:
            return self.admins.find_by_email(email), False

        self.logger.info("Provisioned admin account %s", email)
        return admin, True

    def login(self, payload: Dict) -> Tuple[str, Dict]:
        email = normalize_email(payload.get("email"))
        password = str(payload.get("password") or "")
        if not email or not password:
            raise ValidationError("All fields required")

        admin = self.admins.find_by_email(email)
        if not admin:
            raise NotFound("Admin not found")
        if not verify_password(password, admin.get("password")):
            raise InvalidCredential()

        token = self.tokens.issue_admin_session(admin["_id"], admin["email"])
        self.logger.info("Admin %s signed in", email)
        return token, admin
