import json

from app.services.image_uploads import ImageUpload

TRUE_VALUES = {"true", "1", "yes", "on"}


def parse_list_field(values) -> list[str] | str | None:
    """Accept repeated form keys, one comma-separated string or a JSON array string."""
    if isinstance(values, str):
        values = [values]
    values = [value for value in values or [] if isinstance(value, str)]
    if not values:
        return None
    if len(values) > 1:
        return values

    single = values[0].strip()
    if single.startswith("["):
        try:
            parsed = json.loads(single)
        except ValueError:
            return single
        return parsed if isinstance(parsed, list) else single
    return single


def split_list(value) -> list[str]:
    parsed = parse_list_field(value)
    if parsed is None:
        return []
    if isinstance(parsed, str):
        parsed = parsed.split(",")
    return [str(item).strip() for item in parsed if str(item).strip()]


def parse_bool(value, default: bool | None = None) -> bool | None:
    if value is None or value == "":
        return default
    return str(value).strip().lower() in TRUE_VALUES


async def read_upload(upload) -> ImageUpload | None:
    # Starlette hands text parts back as str.
    if upload is None or isinstance(upload, str):
        return None
    data = await upload.read()
    if not data and not upload.filename:
        return None
    return ImageUpload(data=data, filename=upload.filename, content_type=upload.content_type)
