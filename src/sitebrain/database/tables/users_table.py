from typing import Optional

from sqlalchemy.orm import Mapped, mapped_column

from sitebrain.database.tables.base_class import BasePublic


class Users(BasePublic):
    email: Mapped[Optional[str]] = mapped_column()
