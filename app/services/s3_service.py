import uuid

from fastapi import HTTPException

from app.core.config import settings

LOGO_PREFIX = "logos"
MAX_LOGO_SIZE = 5 * 1024 * 1024  # 5 MB
UPLOAD_URL_EXPIRES = 15 * 60


def _get_session():
    import aiobotocore.session
    session = aiobotocore.session.get_session()
    return session.create_client(
        "s3",
        endpoint_url=f"http://{settings.MINIO_ENDPOINT}",
        aws_access_key_id=settings.MINIO_ACCESS_KEY,
        aws_secret_access_key=settings.MINIO_SECRET_KEY,
        region_name="us-east-1",
    )


def validate_logo(content_type: str, size: int) -> None:
    if not content_type.startswith("image/"):
        raise HTTPException(
            status_code=415,
            detail=f"File type '{content_type}' is not allowed. Only images can be used as a logo.",
        )
    if size > MAX_LOGO_SIZE:
        raise HTTPException(
            status_code=413,
            detail="File size exceeds 5 MB limit.",
        )


def logo_key(gym_id: int) -> str:
    return f"{LOGO_PREFIX}/{gym_id}/{uuid.uuid4().hex}"


def public_url(s3_key: str) -> str:
    base = settings.MINIO_PUBLIC_URL or f"http://{settings.MINIO_ENDPOINT}"
    return f"{base.rstrip('/')}/{settings.MINIO_BUCKET}/{s3_key}"


async def create_logo_upload_url(gym_id: int, content_type: str, size: int) -> tuple[str, str]:
    """Signed PUT url for a gym logo. Returns (signed_url, public_url)."""
    validate_logo(content_type, size)
    s3_key = logo_key(gym_id)

    async with _get_session() as client:
        signed_url = await client.generate_presigned_url(
            "put_object",
            Params={
                "Bucket": settings.MINIO_BUCKET,
                "Key": s3_key,
                "ContentType": content_type,
            },
            ExpiresIn=UPLOAD_URL_EXPIRES,
        )

    return signed_url, public_url(s3_key)
