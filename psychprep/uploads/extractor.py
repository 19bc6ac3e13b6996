"""Image extraction from uploaded PowerPoint archives.

A .pptx file is a zip archive whose embedded pictures live under
``ppt/media/``. Each candidate is identified by sniffing its bytes, never by
its name, and accepted images are copied into the public images directory
under fresh random names.
"""

import logging
import re
import tempfile
import uuid
import zipfile
from pathlib import Path

import filetype

from psychprep.errors import ExtractionError, StorageError, ValidationError

logger = logging.getLogger(__name__)

MEDIA_SUBPATH = Path("ppt") / "media"
IMAGES_URL_PREFIX = "/uploads/images"


def check_admission(content_type: str | None, size: int | None, allowed_types, max_bytes: int):
    """Reject an upload before anything touches disk."""
    if content_type not in allowed_types:
        raise ValidationError("Only PowerPoint files (PPT or PPTX) are allowed")
    if size is not None and size > max_bytes:
        raise ValidationError(
            f"File size too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
        )


def sniff_image(data: bytes) -> str | None:
    """File extension for image payloads, None for anything else."""
    kind = filetype.guess(data)
    if kind is None or not kind.mime.startswith("image/"):
        return None
    return kind.extension


def _natural_key(path: Path):
    # image2.png sorts before image10.png
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", path.name)]


def _discard(paths: list[Path]):
    for path in paths:
        path.unlink(missing_ok=True)


def _open_archive(archive_path: Path, max_extracted_bytes: int) -> zipfile.ZipFile:
    try:
        archive = zipfile.ZipFile(archive_path)
    except (zipfile.BadZipFile, OSError) as e:
        raise ExtractionError("Uploaded file is not a valid PowerPoint archive") from e

    total = sum(info.file_size for info in archive.infolist())
    if total > max_extracted_bytes:
        archive.close()
        raise ExtractionError("Presentation is too large to extract")
    return archive


def extract_images(
    archive_path: Path,
    images_dir: Path,
    scratch_root: Path,
    max_extracted_bytes: int = 200 * 1024 * 1024,
    url_prefix: str = IMAGES_URL_PREFIX,
) -> list[str]:
    """Extract embedded images from a presentation and return their public URLs.

    The archive is unpacked into a scratch directory under `scratch_root`
    which is removed on every exit path. If anything fails, images already
    written by this call are removed as well, so either all images of the
    presentation are published or none are.
    """
    archive_path = Path(archive_path)
    images_dir = Path(images_dir)
    written: list[Path] = []

    archive = _open_archive(archive_path, max_extracted_bytes)
    scratch_root.mkdir(parents=True, exist_ok=True)
    try:
        with archive, tempfile.TemporaryDirectory(dir=scratch_root) as scratch:
            try:
                archive.extractall(scratch)
            except (zipfile.BadZipFile, OSError, RuntimeError) as e:
                raise ExtractionError("Could not unpack presentation") from e

            media_dir = Path(scratch) / MEDIA_SUBPATH
            entries = []
            if media_dir.is_dir():
                entries = sorted((p for p in media_dir.iterdir() if p.is_file()), key=_natural_key)

            images_dir.mkdir(parents=True, exist_ok=True)
            urls = []
            for entry in entries:
                data = entry.read_bytes()
                extension = sniff_image(data)
                if extension is None:
                    logger.info(f"Skipping non-image media entry {entry.name}")
                    continue
                target = images_dir / f"{uuid.uuid4().hex}.{extension}"
                target.write_bytes(data)
                written.append(target)
                urls.append(f"{url_prefix}/{target.name}")
    except OSError as e:
        _discard(written)
        raise StorageError("Could not store extracted images") from e
    except Exception:
        _discard(written)
        raise

    if not urls:
        raise ExtractionError("No images found in the PowerPoint file")

    logger.info(f"Extracted {len(urls)} images from {archive_path.name}")
    return urls
