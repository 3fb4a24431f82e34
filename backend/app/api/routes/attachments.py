from fastapi import APIRouter, Depends, File, UploadFile, status

from app.api.deps import get_attachments, get_current_user
from app.models.user import User
from app.schemas.catalog import AttachmentOut
from app.services.attachments import LocalAttachmentStore


router = APIRouter(prefix="/attachments", tags=["attachments"])


@router.post("", response_model=AttachmentOut, status_code=status.HTTP_201_CREATED)
async def post_attachment(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    store: LocalAttachmentStore = Depends(get_attachments),
) -> AttachmentOut:
    # Bounded read: max_bytes + 1 marks an oversize upload.
    content = await file.read(store.max_bytes + 1)
    stored = store.save(file.filename, content)
    return AttachmentOut(
        url=stored.url,
        file_name=stored.file_name,
        size_bytes=stored.size_bytes,
        sha256=stored.sha256,
    )
