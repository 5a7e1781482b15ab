from pydantic import BaseModel, Field, field_validator
from typing import Any, Dict, List, Optional

DEFAULT_CALORIE_GOAL = 2000.0
DEFAULT_PROTEIN_GOAL = 50.0
DEFAULT_ACTIVITY_GOAL = 30.0

# Day-keyed logs are stored exactly as the client sends them.
DayLog = Dict[str, List[Dict[str, Any]]]


class Goals(BaseModel):
    """Fully defaulted daily goals, as consumed by the achievement engine"""
    calorieGoal: float = Field(default=DEFAULT_CALORIE_GOAL, description="Daily calorie target (kcal)")
    proteinGoal: float = Field(default=DEFAULT_PROTEIN_GOAL, description="Daily protein target (g)")
    activityGoal: float = Field(default=DEFAULT_ACTIVITY_GOAL, description="Daily activity target (minutes)")


class Achievement(BaseModel):
    id: str
    name: str
    description: str


class AppData(BaseModel):
    """Body of PUT /api/data. Only shape defaults are applied, values are persisted verbatim."""
    diet: DayLog = Field(default_factory=dict)
    activity: DayLog = Field(default_factory=dict)
    goals: Optional[Dict[str, Any]] = None
    goalStory: str = ""

    @field_validator('diet', 'activity', mode='before')
    def default_empty_log(cls, v):
        return {} if v is None else v

    @field_validator('goalStory', mode='before')
    def default_empty_story(cls, v):
        return "" if v is None else v


class DataResponse(BaseModel):
    # Stored logs are echoed back untouched, whatever their shape.
    diet: Dict[str, Any] = Field(default_factory=dict)
    activity: Dict[str, Any] = Field(default_factory=dict)
    goals: Optional[Dict[str, Any]] = None
    goalStory: str = ""
    walletAddress: Optional[str] = None
    achievementsEarned: List[str] = Field(default_factory=list)
    achievementsMinted: List[str] = Field(default_factory=list)
    achievementsMeta: List[Achievement] = Field(default_factory=list)


class WalletLinkRequest(BaseModel):
    publicKey: str = Field(..., description="Base58 wallet public key")
    message: str = Field(..., description="Challenge message that was signed")
    signature: str = Field(..., description="Base58 detached signature over the UTF-8 message")

    @field_validator('publicKey', 'message', 'signature')
    def not_blank(cls, v):
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v


class WalletLinkResponse(BaseModel):
    ok: bool = True
    walletAddress: str


class MintResponse(BaseModel):
    ok: bool = True
    achievementId: str
    transaction: str
