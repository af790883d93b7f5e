from pydantic import BaseModel
from typing import List

class ImageRef(BaseModel):
    url: str
    filename: str

class RandomImagesResponse(BaseModel):
    images: List[ImageRef]
    count: int
