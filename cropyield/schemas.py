"""
Pydantic schemas for the crop-yield API.

Field names are snake_case in Python and camelCase on the wire
(``predictionId``, ``accuracyRating``, ...), which is what the web client sends.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class ApiModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SubmitFeedbackRequest(ApiModel):
    prediction_id: str
    user_id: str
    accuracy_rating: float
    comment: Optional[str] = None
    actual_yield: Optional[str] = None


class AddPredictionRequest(ApiModel):
    user_id: str
    crop_type: str
    planting_date: float
    yield_prediction: str
    harvest_date: float
    prediction_data: Optional[str] = None


class SyncUserRequest(ApiModel):
    clerk_id: str
    email: str
    name: str = ""
    username: str = ""
    phone: str = ""
    location: str = ""
    image: Optional[str] = None
    role: Optional[Literal["user", "admin"]] = None


class CreatedResponse(ApiModel):
    id: str


class SyncUserResponse(ApiModel):
    id: Optional[str] = None


class UserResponse(ApiModel):
    id: str
    clerk_id: str
    name: str
    username: str
    email: str
    phone: str
    location: str
    role: Literal["user", "admin"]
    image: Optional[str] = None
    created_at: float


class PredictionResponse(ApiModel):
    id: str
    user_id: str
    crop_type: str
    planting_date: float
    yield_prediction: str
    harvest_date: float
    prediction_data: Optional[str] = None
    created_at: float


class FeedbackResponse(ApiModel):
    id: str
    prediction_id: str
    user_id: str
    accuracy_rating: float
    comment: Optional[str] = None
    actual_yield: Optional[str] = None
    created_at: float
