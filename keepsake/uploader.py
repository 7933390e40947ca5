from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Literal
from uuid import uuid4

from keepsake.api.models import AssetCategory, CategoryInfo, UploadResult
from keepsake.config import DEFAULT_BUCKETS
from keepsake.infra.backend import BackendError, HostedBackend

logger = logging.getLogger(__name__)


ANONYMOUS_FOLDER = "anonymous"
UPLOADED_MESSAGE = "File uploaded successfully!"
NO_FILE_MESSAGE = "Please select a file to upload."

# File-picker filter per category. Advisory only: nothing checks the bytes.
ACCEPT: dict[AssetCategory, str] = {
    AssetCategory.image: "image/*",
    AssetCategory.audio: "audio/*",
    AssetCategory.document: "application/pdf,application/msword",
}

CATEGORY_LABELS: dict[AssetCategory, str] = {
    AssetCategory.image: "Photo/Image",
    AssetCategory.audio: "Music/Audio",
    AssetCategory.document: "Document/PDF",
}


class NoFileSelected(ValueError):
    pass


class UploadFailed(RuntimeError):
    pass


@dataclass(frozen=True, slots=True)
class LocalFile:
    filename: str
    data: bytes
    content_type: str | None = None


@dataclass(frozen=True, slots=True)
class UploadedAsset:
    file: LocalFile
    category: AssetCategory
    bucket: str
    key: str


def file_extension(filename: str) -> str:
    # "photo.jpg" -> "jpg"; a name without a dot is used whole.
    return filename.rsplit(".", 1)[-1]


def storage_key(*, owner_id: str | None, filename: str, token: str) -> str:
    return f"{owner_id or ANONYMOUS_FOLDER}/{token}.{file_extension(filename)}"


def random_token() -> str:
    return uuid4().hex


def bucket_for(category: AssetCategory, buckets: Mapping[AssetCategory, str] | None = None) -> str:
    return (buckets or DEFAULT_BUCKETS)[category]


def preview_for(category: AssetCategory) -> Literal["image", "audio"] | None:
    if category == AssetCategory.image:
        return "image"
    if category == AssetCategory.audio:
        return "audio"
    return None


def category_catalog(buckets: Mapping[AssetCategory, str] | None = None) -> dict[AssetCategory, CategoryInfo]:
    return {
        c: CategoryInfo(label=CATEGORY_LABELS[c], bucket=bucket_for(c, buckets), accept=ACCEPT[c])
        for c in AssetCategory
    }


async def upload_asset(
    *,
    backend: HostedBackend,
    category: AssetCategory,
    files: Sequence[LocalFile],
    access_token: str | None,
    buckets: Mapping[AssetCategory, str] | None = None,
    make_token: Callable[[], str] = random_token,
) -> UploadResult:
    """Upload the first selected file to the category's bucket.

    The stored object lives under the owner's folder (or `anonymous/`) with a
    random name that keeps the original extension.
    """

    if not files:
        raise NoFileSelected(NO_FILE_MESSAGE)

    local = files[0]
    user = await backend.get_current_user(access_token)
    asset = UploadedAsset(
        file=local,
        category=category,
        bucket=bucket_for(category, buckets),
        key=storage_key(owner_id=user.id if user else None, filename=local.filename, token=make_token()),
    )

    try:
        await backend.upload_blob(asset.bucket, asset.key, asset.file.data, asset.file.content_type)
    except BackendError as e:
        logger.warning("Upload to %s/%s failed: %s", asset.bucket, asset.key, e)
        raise UploadFailed(str(e)) from e

    public_url = backend.get_public_url(asset.bucket, asset.key)
    logger.info("Uploaded %s (%d bytes) to %s/%s", category.value, len(local.data), asset.bucket, asset.key)
    return UploadResult(
        message=UPLOADED_MESSAGE,
        category=category,
        bucket=asset.bucket,
        key=asset.key,
        public_url=public_url,
        preview=preview_for(category),
    )
