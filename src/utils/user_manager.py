"""User management utilities.

Users are created by admins; there is no password or session handling here.
"""

import logging
import secrets
from typing import Optional

from sqlalchemy.orm import Session

from core.database import transaction
from core.exceptions import ConflictError, NotFoundError, ValidationError
from models.user import UserModel
from schemas.enums import UserRole

logger = logging.getLogger(__name__)


class UserManager:
    """Manages user records using SQLAlchemy."""

    def __init__(self, db: Session):
        """Initialize UserManager.

        Args:
            db: SQLAlchemy Session.
        """
        self.db = db

    def create_user(
        self,
        email: str,
        role: UserRole = UserRole.STUDENT,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
    ) -> UserModel:
        """Create a new user.

        Args:
            email: Unique e-mail address.
            role: User role.
            first_name: Optional first name.
            last_name: Optional last name.

        Returns:
            The created UserModel.

        Raises:
            ValidationError: If the e-mail is blank.
            ConflictError: If the e-mail is already registered.
        """
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("Email is required")
        existing = self.db.query(UserModel).filter(UserModel.email == email).first()
        if existing:
            raise ConflictError(f"User with email '{email}' already exists")

        user = UserModel(
            user_id=secrets.token_hex(8),
            email=email,
            first_name=(first_name or "").strip() or None,
            last_name=(last_name or "").strip() or None,
            role=UserRole(role).value,
        )
        with transaction(self.db, "creating user"):
            self.db.add(user)
        self.db.refresh(user)
        logger.info("Created %s user %s", user.role, user.user_id)
        return user

    def get_user(self, user_id: str) -> UserModel:
        user = self.db.query(UserModel).filter(UserModel.user_id == user_id).first()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    def display_name(self, user_id: str) -> str:
        return self.get_user(user_id).display_name
