from pydantic import BaseModel
from typing import Dict

class ErrorDetail(BaseModel):
    code: str
    message: str
    context: Dict[str, str] = {}

class ErrorResponse(BaseModel):
    detail: ErrorDetail
