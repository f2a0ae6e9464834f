from pydantic import BaseModel, Field, field_validator


class CreateCheckRequest(BaseModel):
    """Request for POST /checks"""

    name: str = Field(..., min_length=1, max_length=200, description="Candidate name")
    position: str = Field(..., min_length=1, max_length=200, description="Position applied for")
    risk_score: int = Field(..., ge=0, le=100, description="Risk score, encrypted before submission")

    @field_validator("name", "position")
    @classmethod
    def strip_whitespace(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value
