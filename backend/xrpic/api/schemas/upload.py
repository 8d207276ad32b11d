from pydantic import BaseModel, ConfigDict, Field


class FullResultItem(BaseModel):
    fileName: str
    imgURL: str
    extname: str
    type: str = "local"
    id: str
    createdAt: int
    updatedAt: int


class UploadResponse(BaseModel):
    success: bool
    message: str | None = None
    result: list[str] | None = None
    fullResult: list[FullResultItem] | None = None


class DeleteItemRequest(BaseModel):
    type: str
    imgURL: str


class DeleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[DeleteItemRequest] = Field(default_factory=list, alias="list")


class PathUploadRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    items: list[str] = Field(default_factory=list, alias="list")
