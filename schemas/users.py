from pydantic import BaseModel, ConfigDict, Field
from typing import Optional


class UserRecord(BaseModel):
    # db.json entries use camelCase "profileImage"; unknown keys are kept as-is
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    username: str
    password: str  # bcrypt hash, never the cleartext
    profile_image: Optional[str] = Field(default=None, alias="profileImage")

    def to_storage(self) -> dict:
        return self.model_dump(by_alias=True)

class HealthResponse(BaseModel):
    status: str
    connections: int
    rooms: int
