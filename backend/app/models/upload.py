from pydantic import BaseModel


class UploadedImage(BaseModel):
    filename: str
    url: str
    message: str = ""
