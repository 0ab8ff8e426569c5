from fastapi import APIRouter, HTTPException, status
from fastapi.responses import FileResponse

from app.core.storage import image_path
from app.models import ImageKind

router = APIRouter(prefix="/files", tags=["files"])


@router.get("/{kind}/{file_name}")
def get_image(kind: ImageKind, file_name: str):
    file_path = image_path(kind, file_name)
    if not file_path.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="File not found")
    return FileResponse(file_path)
