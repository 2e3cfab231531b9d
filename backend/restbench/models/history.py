import uuid
from datetime import datetime

from sqlalchemy import String, DateTime, Text, Integer, Float, JSON, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from restbench.database import Base


class ExecutionRecord(Base):
    __tablename__ = "execution_results"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    request_id: Mapped[str] = mapped_column(ForeignKey("requests.id", ondelete="CASCADE"), index=True)
    status: Mapped[int] = mapped_column(Integer, nullable=False)
    status_text: Mapped[str] = mapped_column(String(200), default="")
    headers: Mapped[dict | None] = mapped_column(JSON, default=dict)
    body: Mapped[str | None] = mapped_column(Text)
    time: Mapped[float] = mapped_column(Float, default=0)
    size: Mapped[int] = mapped_column(Integer, default=0)
    timestamp: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    request: Mapped["Request"] = relationship(back_populates="results")  # noqa: F821
