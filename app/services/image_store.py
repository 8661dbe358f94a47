import hashlib
import io
import logging
import re
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from PIL import Image, ImageSequence, UnidentifiedImageError

from app.config import settings
from app.services.errors import ImageRejected, UploadFailed

logger = logging.getLogger(__name__)

MAX_OUTPUT_DIMENSION = 2000
WEBP_QUALITY = 85
ASPECT_RATIO_TOLERANCE = 0.1

CONTENT_TYPES = {
    "webp": "image/webp",
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
}
FORMAT_EXTENSIONS = {"jpeg": "jpg"}


@dataclass(frozen=True)
class ImageConstraints:
    min_width: int = 100
    min_height: int = 100
    max_width: int = 5000
    max_height: int = 5000
    max_bytes: int = 50 * 1024 * 1024
    aspect_ratio: str | None = None  # "W:H"


PROFILE_IMAGE = ImageConstraints(
    min_width=100,
    min_height=100,
    max_width=2000,
    max_height=2000,
    max_bytes=settings.PROFILE_IMAGE_MAX_BYTES,
)
BANNER_IMAGE = ImageConstraints(
    min_width=300,
    min_height=150,
    max_width=4000,
    max_height=2000,
    max_bytes=settings.BANNER_IMAGE_MAX_BYTES,
)
WHITEBOARD_IMAGE = ImageConstraints(
    max_width=4000,
    max_height=4000,
    max_bytes=settings.WHITEBOARD_IMAGE_MAX_BYTES,
)

# Center crop hint stored with profile images for the CDN.
PROFILE_TRANSFORMATION = {"width": 500, "height": 500, "crop": "fill", "gravity": "center"}


@dataclass
class ImageCheck:
    ok: bool
    metadata: dict | None = None
    reason: str | None = None


@dataclass
class PutOptions:
    public_id: str | None = None
    transformation: dict = field(default_factory=dict)


@dataclass
class UploadResult:
    url: str
    external_id: str
    format: str
    width: int
    height: int
    byte_size: int

    def metadata(self, uploaded_at: datetime | None = None) -> dict:
        return {
            "format": self.format,
            "width": self.width,
            "height": self.height,
            "size": self.byte_size,
            "uploadedAt": (uploaded_at or datetime.now(timezone.utc)).isoformat(),
        }


def _join_path(*segments: str) -> str:
    cleaned = [segment.strip("/") for segment in segments if segment and segment.strip("/")]
    return "/".join(cleaned)


def _inspect(data: bytes) -> dict:
    with Image.open(io.BytesIO(data)) as img:
        return {
            "format": (img.format or "").lower(),
            "width": img.width,
            "height": img.height,
            "frames": getattr(img, "n_frames", 1),
            "size": len(data),
        }


def dated_folder(root: str, now: datetime | None = None) -> str:
    """Time-bucketed folder, e.g. ``profiles/2026/03``."""
    moment = now or datetime.now(timezone.utc)
    return f"{root}/{moment.year}/{moment.month:02d}"


def unique_filename(original_name: str | None, data: bytes) -> str:
    """Content hash plus millisecond timestamp; the extension is added on upload."""
    digest = hashlib.md5(data).hexdigest()[:8]
    timestamp = int(time.time() * 1000)
    stem = (original_name or "image").rsplit(".", 1)[0]
    safe_stem = re.sub(r"[^a-zA-Z0-9]", "-", stem)[:50] or "image"
    return f"{safe_stem}-{digest}-{timestamp}"


def extension_for(image_format: str) -> str:
    return FORMAT_EXTENSIONS.get(image_format, image_format or "bin")


class ImageStore:
    """Validate, resize and push images to the Spaces bucket behind the CDN."""

    def __init__(
        self,
        client=None,
        bucket: str | None = None,
        cdn_url: str | None = None,
        base_path: str | None = None,
        timeout_seconds: int | None = None,
    ):
        self._client = client
        self.bucket = bucket or settings.SPACES_NAME
        self.cdn_url = (cdn_url if cdn_url is not None else settings.SPACES_CDN_URL).rstrip("/")
        self.base_path = base_path if base_path is not None else settings.SPACES_BASE_PATH
        self.timeout_seconds = timeout_seconds or settings.IMAGE_UPLOAD_TIMEOUT_SECONDS

    @property
    def client(self):
        if self._client is None:
            session = boto3.session.Session()
            self._client = session.client(
                "s3",
                region_name=settings.SPACES_REGION,
                endpoint_url=settings.SPACES_ENDPOINT,
                aws_access_key_id=settings.SPACES_KEY,
                aws_secret_access_key=settings.SPACES_SECRET,
                config=Config(
                    connect_timeout=10,
                    read_timeout=self.timeout_seconds,
                    retries={"max_attempts": 2},
                ),
            )
        return self._client

    def validate(self, data: bytes, constraints: ImageConstraints) -> ImageCheck:
        if not data:
            return ImageCheck(ok=False, reason="No image data provided")

        if len(data) > constraints.max_bytes:
            limit_mb = constraints.max_bytes / (1024 * 1024)
            return ImageCheck(ok=False, reason=f"File size exceeds {limit_mb:g}MB limit")

        try:
            metadata = _inspect(data)
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            return ImageCheck(ok=False, reason=f"Image validation failed: {exc}")

        width, height = metadata["width"], metadata["height"]
        if width < constraints.min_width or height < constraints.min_height:
            return ImageCheck(
                ok=False,
                metadata=metadata,
                reason=f"Image too small. Minimum dimensions: {constraints.min_width}x{constraints.min_height}px",
            )
        if width > constraints.max_width or height > constraints.max_height:
            return ImageCheck(
                ok=False,
                metadata=metadata,
                reason=f"Image too large. Maximum dimensions: {constraints.max_width}x{constraints.max_height}px",
            )

        if constraints.aspect_ratio:
            ratio_w, ratio_h = (float(part) for part in constraints.aspect_ratio.split(":"))
            if abs(width / height - ratio_w / ratio_h) > ASPECT_RATIO_TOLERANCE:
                return ImageCheck(
                    ok=False,
                    metadata=metadata,
                    reason=f"Image aspect ratio must be {constraints.aspect_ratio}",
                )

        return ImageCheck(ok=True, metadata=metadata)

    def transform(self, data: bytes) -> bytes:
        """Fit within 2000x2000 without upscaling; still images become WebP."""
        try:
            with Image.open(io.BytesIO(data)) as img:
                frames = getattr(img, "n_frames", 1)
                oversized = img.width > MAX_OUTPUT_DIMENSION or img.height > MAX_OUTPUT_DIMENSION
                if frames > 1:
                    if not oversized:
                        return data
                    return self._resize_animated(img)

                img.load()
                still = img.copy()
        except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as exc:
            logger.error("Image processing error: %s", exc)
            raise ImageRejected("Failed to process image") from exc

        if oversized:
            still.thumbnail((MAX_OUTPUT_DIMENSION, MAX_OUTPUT_DIMENSION), Image.Resampling.LANCZOS)
        if still.mode not in ("RGB", "RGBA"):
            has_alpha = still.mode in ("LA", "PA") or "transparency" in still.info
            still = still.convert("RGBA" if has_alpha else "RGB")

        output = io.BytesIO()
        still.save(output, format="WEBP", quality=WEBP_QUALITY)
        return output.getvalue()

    @staticmethod
    def _resize_animated(img: Image.Image) -> bytes:
        frames = []
        for frame in ImageSequence.Iterator(img):
            resized = frame.copy()
            resized.thumbnail((MAX_OUTPUT_DIMENSION, MAX_OUTPUT_DIMENSION))
            frames.append(resized)
        output = io.BytesIO()
        save_kwargs = {"loop": img.info.get("loop", 0)}
        if "duration" in img.info:
            save_kwargs["duration"] = img.info["duration"]
        frames[0].save(
            output,
            format=img.format,
            save_all=True,
            append_images=frames[1:],
            **save_kwargs,
        )
        return output.getvalue()

    def put(self, data: bytes, folder: str, options: PutOptions | None = None) -> UploadResult:
        if not data:
            raise UploadFailed("No image data provided")
        options = options or PutOptions()

        try:
            details = _inspect(data)
        except (UnidentifiedImageError, OSError, ValueError) as exc:
            raise UploadFailed(f"Upload failed: unreadable image ({exc})") from exc

        image_format = details["format"]
        filename = options.public_id or unique_filename(None, data)
        key = _join_path(self.base_path, folder, f"{filename}.{extension_for(image_format)}")

        extra_args = {"ACL": "public-read", "ContentType": CONTENT_TYPES.get(image_format, "application/octet-stream")}
        if options.transformation:
            extra_args["Metadata"] = {name: str(value) for name, value in options.transformation.items()}

        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data, **extra_args)
        except (BotoCoreError, ClientError) as exc:
            logger.error("Spaces upload error for %s: %s", key, exc)
            raise UploadFailed(f"Upload failed: {exc}") from exc

        return UploadResult(
            url=f"{self.cdn_url}/{key}",
            external_id=key,
            format=image_format,
            width=details["width"],
            height=details["height"],
            byte_size=len(data),
        )

    def delete(self, external_id: str | None) -> bool:
        if not external_id:
            return True
        try:
            # S3 DeleteObject answers 204 for absent keys as well.
            self.client.delete_object(Bucket=self.bucket, Key=external_id)
            return True
        except (BotoCoreError, ClientError) as exc:
            logger.warning("Spaces delete error for %s: %s", external_id, exc)
            return False


image_store = ImageStore()


def get_image_store() -> ImageStore:
    return image_store
