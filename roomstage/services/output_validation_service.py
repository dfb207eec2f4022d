"""
Provider output validation.

Image providers occasionally answer with an error page, a thumbnail, or the
input image unchanged. Every provider result runs through validate_output()
before it is trusted; each check can also be used on its own.
"""
import hashlib
from typing import Optional

from roomstage.core.errors import ErrorCode, OutputValidationError
from roomstage.core.request_context import get_logger

logger = get_logger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SIGNATURE = b"\xff\xd8\xff"

RENDERER_MIN_BYTES = 200 * 1024
EDIT_API_MIN_BYTES = 50 * 1024
PREFIX_COMPARE_BYTES = 100 * 1024


def detect_format(data: bytes) -> Optional[str]:
    """'png', 'jpeg' or None"""
    if data.startswith(PNG_SIGNATURE):
        return "png"
    if data.startswith(JPEG_SIGNATURE):
        return "jpeg"
    return None


def check_signature(data: bytes, request_id: Optional[str] = None) -> str:
    image_format = detect_format(data)
    if image_format is None:
        raise OutputValidationError(
            ErrorCode.OUTPUT_INVALID_FORMAT,
            f"Output is not PNG or JPEG (first bytes: {data[:8].hex() or 'empty'})",
            request_id,
        )
    return image_format


def check_min_size(data: bytes, min_bytes: int, request_id: Optional[str] = None) -> None:
    if len(data) < min_bytes:
        raise OutputValidationError(
            ErrorCode.OUTPUT_TOO_SMALL,
            f"Output is {len(data)} bytes, expected at least {min_bytes}",
            request_id,
        )


def check_prefix_changed(output: bytes, original: bytes, request_id: Optional[str] = None) -> None:
    if output[:PREFIX_COMPARE_BYTES] == original[:PREFIX_COMPARE_BYTES]:
        raise OutputValidationError(
            ErrorCode.MODEL_RETURNED_UNCHANGED_IMAGE,
            f"First {PREFIX_COMPARE_BYTES} bytes of output match the input",
            request_id,
        )


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def check_hash_changed(output: bytes, original: bytes, request_id: Optional[str] = None) -> None:
    if sha256_hex(output) == sha256_hex(original):
        raise OutputValidationError(
            ErrorCode.MODEL_RETURNED_UNCHANGED_IMAGE,
            "Output hash matches the input hash",
            request_id,
        )


def validate_output(
    output: bytes,
    original: bytes,
    min_bytes: int,
    request_id: Optional[str] = None,
) -> str:
    """
    Run all output checks in order: signature, size, prefix, hash.

    Returns the detected format; raises OutputValidationError on the first
    failing check.
    """
    image_format = check_signature(output, request_id)
    check_min_size(output, min_bytes, request_id)
    check_prefix_changed(output, original, request_id)
    check_hash_changed(output, original, request_id)

    logger.info(f"Output validated: format={image_format} size={len(output)} sha256={sha256_hex(output)[:12]}")
    return image_format
