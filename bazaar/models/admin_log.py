import uuid
from typing import Optional
from sqlmodel import Field, SQLModel
from datetime import datetime, timezone


class AdminLog(SQLModel, table=True):
    __tablename__ = "admin_logs"

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc), index=True)

    actor_id: str
    actor_name: str

    action: str
    target: str
    details: Optional[str] = None
    type: str = Field(default="INFO")  # values: "INFO", "WARNING", "DANGER"
