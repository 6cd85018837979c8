from datetime import datetime
from typing import Optional

from pydantic import Field

from src.shared.models.common import ApiModel


class StudentDTO(ApiModel):
    id: int
    first_name: str
    last_name: str
    admission: int
    grade: Optional[int] = None
    stream: Optional[str] = None
    parent_id: Optional[int] = None
    pickup_latitude: Optional[float] = None
    pickup_longitude: Optional[float] = None
    created_at: Optional[datetime] = None


class CreateStudentRequest(ApiModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    admission: int
    grade: Optional[int] = None
    stream: Optional[str] = None
    parent_id: Optional[int] = None
    pickup_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    pickup_longitude: Optional[float] = Field(default=None, ge=-180, le=180)


class UpdateStudentRequest(ApiModel):
    first_name: Optional[str] = Field(default=None, min_length=1)
    last_name: Optional[str] = Field(default=None, min_length=1)
    grade: Optional[int] = None
    stream: Optional[str] = None
    pickup_latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    pickup_longitude: Optional[float] = Field(default=None, ge=-180, le=180)
