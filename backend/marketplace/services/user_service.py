from typing import Optional
from datetime import datetime
from sqlalchemy.orm import Session
from marketplace.models_sqlalchemy.models import User, UserRole, UserStatus
from marketplace.utils.logger import logger


class UserService:

    def __init__(self, db: Session):
        self.db = db

    def create_user(self, email: str, name: str, hashed_password: str, role: UserRole) -> User:
        # Sellers wait for admin approval; everybody else is active right away.
        status = UserStatus.PENDING if role == UserRole.SELLER else UserStatus.ACTIVE
        user = User(
            email=email.lower(),
            name=name,
            hashed_password=hashed_password,
            role=role,
            status=status,
            created_at=datetime.utcnow()
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        logger.info(f"Created user: {user.email} with role: {user.role.value}")
        return user

    def get_user_by_email(self, email: str) -> Optional[User]:
        return self.db.query(User).filter(User.email == email.lower()).first()

    def get_user_by_id(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def update_user(self, user_id: str, updates: dict) -> Optional[User]:
        user = self.get_user_by_id(user_id)
        if user:
            for key, value in updates.items():
                if hasattr(user, key):
                    setattr(user, key, value)
            self.db.commit()
            self.db.refresh(user)
            logger.info(f"Updated user: {user.email}")
            return user
        return None
