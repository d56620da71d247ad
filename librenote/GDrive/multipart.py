# multipart.py
# Description: multipart/related bodies for Drive's uploadType=multipart endpoint
#
# Imports
import base64
import json
from typing import Any, Dict, Tuple
#
#######################################################################################################################
#
# Functions:

JSON_BOUNDARY = "----NoteFlowBoundary"
UPLOAD_BOUNDARY = "----NoteFlowUpload"


def _metadata_part(boundary: str, metadata: Dict[str, Any]) -> str:
    return (
        f"\r\n--{boundary}\r\n"
        "Content-Type: application/json; charset=UTF-8\r\n\r\n"
        + json.dumps(metadata)
    )


def build_json_multipart(metadata: Dict[str, Any], content: Any,
                         boundary: str = JSON_BOUNDARY) -> Tuple[bytes, str]:
    """
    Metadata part followed by a pretty-printed JSON payload part.

    Returns:
        (body, content_type header value)
    """
    payload = content if isinstance(content, str) else json.dumps(content, indent=2, ensure_ascii=False)
    body = (
        _metadata_part(boundary, metadata)
        + f"\r\n--{boundary}\r\n"
        + "Content-Type: application/json\r\n\r\n"
        + payload
        + f"\r\n--{boundary}--"
    )
    return body.encode("utf-8"), f"multipart/related; boundary={boundary}"


def build_binary_multipart(metadata: Dict[str, Any], data: bytes, mime_type: str,
                           boundary: str = UPLOAD_BOUNDARY) -> Tuple[bytes, str]:
    """Metadata part followed by a base64 transfer-encoded binary part."""
    head = (
        _metadata_part(boundary, metadata)
        + f"\r\n--{boundary}\r\n"
        + f"Content-Type: {mime_type}\r\nContent-Transfer-Encoding: base64\r\n\r\n"
    )
    body = head.encode("utf-8") + base64.b64encode(data) + f"\r\n--{boundary}--".encode("utf-8")
    return body, f"multipart/related; boundary={boundary}"

#
# End of multipart.py
#######################################################################################################################
