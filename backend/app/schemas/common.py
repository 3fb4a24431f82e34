from pydantic import BaseModel, ConfigDict


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, use_enum_values=True)


class ErrorResponse(BaseModel):
    detail: str
    code: str
    retryable: bool = False
