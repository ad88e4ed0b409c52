"""AdminUser model - principals allowed to log in to the admin API."""
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column
from slugshare.models.base import Base


class AdminUser(Base):
    __tablename__ = "admin_users"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    username: Mapped[str] = mapped_column(String(100), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)  # werkzeug salted hash
    role: Mapped[str] = mapped_column(String(50), nullable=False, default="admin")
