from pydantic import BaseModel


class SubmitResponse(BaseModel):
    stored: int


class ReportResponse(BaseModel):
    transaction_id: str
    status: str = "reported"
