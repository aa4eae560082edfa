import re
from datetime import datetime
from typing import Dict, Optional

from pymongo.errors import DuplicateKeyError, PyMongoError

from .config import Settings
from .errors import (
    AlreadyVerified,
    Conflict,
    InvalidCredential,
    NotFound,
    NotVerified,
    ValidationError,
    WeakCredential,
)
from .passwords import (
    MAX_PASSWORD_BYTES,
    hash_password,
    password_policy_failures,
    verify_password,
)
from .store import UserStore, utcnow
from .tokens import VERIFICATION_PURPOSE
from .uploads import PLACEHOLDER_PROFILE_PIC

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def normalize_email(value: Optional[str]) -> str:
    return str(value or "").strip().lower()


def is_valid_email(value: Optional[str]) -> bool:
    normalized = normalize_email(value)
    return bool(normalized and EMAIL_PATTERN.match(normalized))


def isoformat(value) -> Optional[str]:
    if not isinstance(value, datetime):
        return None
    if value.tzinfo is None:
        return f"{value.isoformat()}Z"
    return value.isoformat()


def serialize_user(user_document: Optional[Dict]) -> Dict:
    """Public view of a user: no password hash, no verification token."""
    if not user_document:
        return {}
    return {
        "id": str(user_document.get("_id")),
        "firstName": user_document.get("first_name", "") or "",
        "lastName": user_document.get("last_name", "") or "",
        "email": user_document.get("email", "") or "",
        "profilePic": user_document.get("profile_pic") or PLACEHOLDER_PROFILE_PIC,
        "isVerified": bool(user_document.get("is_verified")),
        "verifiedAt": isoformat(user_document.get("verified_at")),
        "createdAt": isoformat(user_document.get("created_at")),
        "updatedAt": isoformat(user_document.get("updated_at")),
    }


class UserService:
    def __init__(self, settings: Settings, users: UserStore, tokens, mailer, images, logger):
        self.settings = settings
        self.users = users
        self.tokens = tokens
        self.mailer = mailer
        self.images = images
        self.logger = logger

    def _dispatch_verification(self, user_document: Dict, resend: bool = False):
        token = self.tokens.issue_verification(user_document["_id"], resend=resend)
        self.users.update(user_document["_id"], {"verification_token": token})
        sent, error_details = self.mailer.send_verification_email(
            user_document["email"], token
        )
        if not sent:
            self.logger.error(
                "Verification email for %s was not delivered: %s",
                user_document["email"],
                error_details or "Unknown delivery error",
            )
        return sent

    def signup(self, payload: Dict, image_file=None, host_url: str = "") -> Dict:
        first_name = str(payload.get("firstName") or payload.get("first_name") or "").strip()
        last_name = str(payload.get("lastName") or payload.get("last_name") or "").strip()
        email = normalize_email(payload.get("email"))
        password = str(payload.get("password") or "")

        if not first_name or not last_name or not email or not password:
            raise ValidationError("All fields are required")
        if not is_valid_email(email):
            raise ValidationError("Please provide a valid email address.")
        if self.users.find_by_email(email):
            raise Conflict("Email already registered")
        policy_failures = password_policy_failures(password)
        if "max_length" in policy_failures:
            raise WeakCredential(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long.")
        if policy_failures:
            raise WeakCredential()

        profile_pic, profile_pic_filename = PLACEHOLDER_PROFILE_PIC, None
        if image_file is not None and getattr(image_file, "filename", ""):
            profile_pic, profile_pic_filename = self.images.store_profile_picture(
                image_file, host_url
            )

        user_document = {
            "first_name": first_name,
            "last_name": last_name,
            "email": email,
            "password": hash_password(password, self.settings.bcrypt_rounds),
            "profile_pic": profile_pic,
            "profile_pic_filename": profile_pic_filename,
            "is_verified": False,
            "verification_token": None,
        }
        try:
            user_document = self.users.insert(user_document)
        except DuplicateKeyError as exc:
            self.images.remove(profile_pic_filename)
            raise Conflict("Email already registered") from exc
        except PyMongoError:
            self.images.remove(profile_pic_filename)
            raise

        self.logger.info("Registered user %s", email)
        self._dispatch_verification(user_document)
        return user_document

    def verify_email(self, token: str) -> bool:
        """Mark the token's user as verified. Returns False if already verified."""
        claims = self.tokens.decode(token, purpose=VERIFICATION_PURPOSE)
        user = self.users.find_by_id(claims["sub"])
        if not user:
            raise NotFound("Invalid verification link")
        if user.get("is_verified"):
            return False

        self.users.update(
            user["_id"],
            {"is_verified": True, "verified_at": utcnow(), "verification_token": None},
        )
        self.logger.info("Verified email for %s", user.get("email"))
        return True

    def resend_verification(self, email_value) -> Dict:
        email = normalize_email(email_value)
        if not email:
            raise ValidationError("Email is required")
        user = self.users.find_by_email(email)
        if not user:
            raise NotFound("User not found")
        if user.get("is_verified"):
            raise AlreadyVerified()

        self._dispatch_verification(user, resend=True)
        return user

    def login(self, payload: Dict):
        email = normalize_email(payload.get("email"))
        password = str(payload.get("password") or "")
        if not email or not password:
            raise ValidationError("All fields required")

        user = self.users.find_by_email(email)
        if not user:
            raise NotFound("User not found")
        if not user.get("is_verified"):
            raise NotVerified()
        if not verify_password(password, user.get("password")):
            raise InvalidCredential()

        token = self.tokens.issue_session(user["_id"], user["email"])
        self.logger.info("User %s signed in", email)
        return token, user

    def profile(self, user_id) -> Dict:
        user = self.users.find_by_id(user_id)
        if not user:
            raise NotFound("User not found")
        return user

    def update_profile_picture(self, user_id, image_file, host_url: str) -> Dict:
        if image_file is None or not getattr(image_file, "filename", ""):
            raise ValidationError("No file uploaded")
        user = self.profile(user_id)

        profile_pic, filename = self.images.store_profile_picture(image_file, host_url)
        try:
            updated_user = self.users.update(
                user["_id"], {"profile_pic": profile_pic, "profile_pic_filename": filename}
            )
        except PyMongoError:
            self.images.remove(filename)
            raise
        if not updated_user:
            self.images.remove(filename)
            raise NotFound("User not found")
        previous_filename = user.get("profile_pic_filename")
        if previous_filename and previous_filename != filename:
            self.images.remove(previous_filename)
        return updated_user
