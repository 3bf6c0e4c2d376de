from sqlmodel import Field, SQLModel


class SystemSettings(SQLModel, table=True):
    __tablename__ = "system_settings"

    # single row table
    id: int = Field(default=1, primary_key=True)

    price_cap_percentage: float = Field(default=80)
    maintenance_mode: bool = Field(default=False)
    allow_new_signups: bool = Field(default=True)
    system_notice: str = Field(default="")
