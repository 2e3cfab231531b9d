import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import String, DateTime, ForeignKey, Text, Enum as SAEnum, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from restbench.database import Base


class HttpMethod(str, PyEnum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"


class BodyType(str, PyEnum):
    JSON = "json"
    FORM = "form"
    RAW = "raw"


class ScriptLanguage(str, PyEnum):
    PYTHON = "python"
    JAVASCRIPT = "javascript"


class Request(Base):
    __tablename__ = "requests"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    method: Mapped[HttpMethod] = mapped_column(SAEnum(HttpMethod), default=HttpMethod.GET)
    url: Mapped[str] = mapped_column(Text, nullable=False)
    folder_id: Mapped[str] = mapped_column(ForeignKey("folders.id", ondelete="CASCADE"), index=True)
    headers: Mapped[list | None] = mapped_column(JSON, default=list)
    params: Mapped[list | None] = mapped_column(JSON, default=list)
    body: Mapped[dict | None] = mapped_column(JSON, default=None)
    script: Mapped[str | None] = mapped_column(Text, default=None)
    script_language: Mapped[ScriptLanguage] = mapped_column(
        SAEnum(ScriptLanguage), default=ScriptLanguage.PYTHON
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    folder: Mapped["Folder"] = relationship(back_populates="requests")  # noqa: F821
    results: Mapped[list["ExecutionRecord"]] = relationship(  # noqa: F821
        back_populates="request", cascade="all, delete-orphan"
    )
