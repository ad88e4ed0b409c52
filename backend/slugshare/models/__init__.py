"""Import all models so SQLAlchemy metadata knows about them."""
from slugshare.models.base import Base
from slugshare.models.file_record import FileRecord
from slugshare.models.admin_user import AdminUser

__all__ = ["Base", "FileRecord", "AdminUser"]
