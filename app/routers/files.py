"""
Uploaded Image Router

Serves incident images stored by LocalStorage. With Supabase Storage the
images are served by the storage service itself and this route returns 404.
"""

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from app.deps import AppContext, get_ctx
from app.services.storage import LOCAL_URL_PATH, LocalStorage

router = APIRouter(tags=["files"])


@router.get(LOCAL_URL_PATH + "/{filename}")
async def get_file(filename: str, ctx: AppContext = Depends(get_ctx)) -> FileResponse:
    """
    Serve an uploaded incident image over HTTP.
    """
    storage = ctx.storage
    if not isinstance(storage, LocalStorage):
        raise HTTPException(status_code=404, detail="File not found")
    file_path = storage.resolve(filename)
    if file_path is None:
        raise HTTPException(status_code=400, detail="Invalid filename")
    if not file_path.exists():
        raise HTTPException(status_code=404, detail="File not found")
    return FileResponse(str(file_path))
