import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import String, DateTime, JSON
from sqlalchemy.orm import Mapped, mapped_column

from restbench.database import Base


class VariableScope(str, PyEnum):
    GLOBAL = "global"
    WORKSPACE = "workspace"
    COLLECTION = "collection"


class Environment(Base):
    __tablename__ = "environments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    # Stored as JSON arrays of {key, value, enabled, scope, scope_id} / {key, value, enabled}
    variables: Mapped[list | None] = mapped_column(JSON, default=list)
    headers: Mapped[list | None] = mapped_column(JSON, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
