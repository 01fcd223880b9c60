"""
Handcrafted Haven Backend — Stored Image Route
==============================================

What:  Serves uploaded product photos and avatars at /api/files/<bucket>/<name>.
Security:
    FileService.resolve_path() refuses anything outside the storage root,
    so "../" tricks answer 404 like any missing file.
"""

from fastapi import APIRouter
from fastapi.responses import FileResponse

from haven.schemas.common import ErrorResponse
from haven.services.file_service import file_service

router = APIRouter(prefix="/api", tags=["Files"])


@router.get(
    "/files/{file_path:path}",
    summary="Serve an uploaded image",
    responses={
        200: {"description": "Image file"},
        404: {"description": "File not found", "model": ErrorResponse},
    },
)
async def serve_file(file_path: str) -> FileResponse:
    path = file_service.resolve_path(file_path)
    return FileResponse(
        path=str(path),
        media_type=file_service.media_type(path),
        headers={"Cache-Control": "public, max-age=86400"},  # names are never reused
    )
