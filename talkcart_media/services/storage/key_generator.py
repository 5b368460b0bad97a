import re
import secrets
import time

from talkcart_media.schemas.media import UploadContext

_NAMESPACE_SEGMENTS = {
    UploadContext.GENERAL: None,
    UploadContext.POST: "posts",
    UploadContext.PROFILE_PICTURE: "profile-pictures",
    UploadContext.MARKETPLACE_LISTING: "marketplace",
    UploadContext.CHAT_ATTACHMENT: "chat",
    UploadContext.STREAM_THUMBNAIL: "streams",
}


class KeyGenerator:
    @staticmethod
    def _safe_segment(value: str) -> str:
        s = re.sub(r"[^a-zA-Z0-9_-]", "_", value.strip())
        return s.strip("_") or "file"

    @staticmethod
    def generate_public_id(field_name: str, *, now_ms: int | None = None, token: str | None = None) -> str:
        """<field>_<epoch-millis>_<random-token>; unique without a coordinating authority."""
        timestamp = now_ms if now_ms is not None else int(time.time() * 1000)
        random_token = token or secrets.token_hex(6)
        return f"{KeyGenerator._safe_segment(field_name)}_{timestamp}_{random_token}"

    @staticmethod
    def namespace_for(context: UploadContext, root_folder: str) -> str:
        root = root_folder.strip("/")
        if context not in _NAMESPACE_SEGMENTS:
            raise ValueError(f"Unknown upload context: {context}")
        segment = _NAMESPACE_SEGMENTS[context]
        if not segment:
            return root
        return f"{root}/{segment}" if root else segment
