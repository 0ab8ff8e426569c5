from pydantic import BaseModel


class ReportInfo(BaseModel):
    type: str
    format: str
    path: str
    description: str
