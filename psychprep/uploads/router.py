import logging
import time
import uuid
from pathlib import Path
from typing import BinaryIO

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse

from psychprep.auth.gate import get_store, require_admin
from psychprep.config import settings
from psychprep.db import ContentStore
from psychprep.errors import NotFoundError, StorageError, ValidationError
from psychprep.models import UserAccount
from psychprep.sampler import choose
from psychprep.uploads.extractor import check_admission, extract_images

logger = logging.getLogger(__name__)

router = APIRouter(tags=["uploads"])

CHUNK_SIZE = 1024 * 1024


def _archive_name(filename: str | None) -> str:
    suffix = Path(filename or "").suffix.lower()
    if suffix not in (".ppt", ".pptx"):
        suffix = ".pptx"
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:12]}{suffix}"


def _save_upload(src: BinaryIO, dest: Path, max_bytes: int):
    """Stream an upload to disk, enforcing the size limit as bytes arrive."""
    dest.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    try:
        with open(dest, "wb") as out:
            while chunk := src.read(CHUNK_SIZE):
                written += len(chunk)
                if written > max_bytes:
                    raise ValidationError(
                        f"File size too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
                    )
                out.write(chunk)
    except ValidationError:
        dest.unlink(missing_ok=True)
        raise
    except OSError as e:
        dest.unlink(missing_ok=True)
        raise StorageError("Could not store upload") from e


@router.post("/api/upload/ppt", status_code=201)
async def upload_ppt(
    ppt: UploadFile | None = File(None),
    store: ContentStore = Depends(get_store),
    admin: UserAccount = Depends(require_admin),
):
    if ppt is None or not ppt.filename:
        raise ValidationError("No file uploaded")

    check_admission(
        ppt.content_type, ppt.size, settings.allowed_upload_types, settings.max_upload_bytes
    )

    archive_path = settings.ppt_dir / _archive_name(ppt.filename)
    await run_in_threadpool(_save_upload, ppt.file, archive_path, settings.max_upload_bytes)

    urls: list[str] = []
    try:
        urls = await run_in_threadpool(
            extract_images,
            archive_path,
            settings.images_dir,
            settings.scratch_dir,
            settings.max_extracted_bytes,
        )
        image_set = store.create_image_set(ppt.filename, urls)
    except Exception:
        archive_path.unlink(missing_ok=True)
        for url in urls:
            (settings.images_dir / url.rsplit("/", 1)[-1]).unlink(missing_ok=True)
        raise

    logger.info(f"Admin {admin.id} uploaded {ppt.filename}: image set {image_set.id}")
    return {
        "success": True,
        "message": f"Successfully extracted {len(urls)} images from PPT",
        "image_set_id": image_set.id,
        "images": urls,
    }


@router.get("/api/tat/random-set")
def random_image_set(store: ContentStore = Depends(get_store)):
    image_set = choose(store.list_image_sets())
    if image_set is None:
        raise NotFoundError("No TAT images available")
    return {"success": True, "image_set_id": image_set.id, "images": image_set.image_urls}


@router.get("/uploads/images/{name}")
def serve_image(name: str):
    # Resolved per request: the upload root can be repointed after import
    images_dir = settings.images_dir.resolve()
    path = (images_dir / name).resolve()
    if path.parent != images_dir or not path.is_file():
        raise NotFoundError("File not found")
    return FileResponse(path)
