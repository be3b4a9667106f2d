"""
File validation and log sanitization utilities.

Sets PIL.Image.MAX_IMAGE_PIXELS to prevent decompression-bomb attacks.
"""

import os
import re
import logging

import cv2
from fastapi import HTTPException
from PIL import Image

from app.config import settings

# Prevent decompression-bomb attacks for all image operations
Image.MAX_IMAGE_PIXELS = settings.pil_max_image_pixels

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = ['.jpg', '.jpeg', '.png', '.webp', '.gif', '.tiff', '.tif', '.bmp']
VIDEO_EXTENSIONS = ['.mp4', '.mov', '.avi', '.mkv', '.webm']
AUDIO_EXTENSIONS = ['.mp3', '.wav', '.m4a', '.aac', '.ogg', '.flac']


def media_kind(content_type: str = "", filename: str = "") -> str:
    """'image' | 'video' | 'audio' | 'unknown', from the MIME type first, then the extension."""
    major = (content_type or "").split("/")[0].lower()
    if major in ("image", "video", "audio"):
        return major

    ext = os.path.splitext(filename or "")[1].lower()
    if ext in IMAGE_EXTENSIONS:
        return "image"
    if ext in VIDEO_EXTENSIONS:
        return "video"
    if ext in AUDIO_EXTENSIONS:
        return "audio"
    return "unknown"


def validate_file(filename: str, filesize: int, file_path: str = None) -> bool:
    """Check file extension, size, and content integrity by decoding it."""
    ext = os.path.splitext(filename)[1].lower()

    if ext in IMAGE_EXTENSIONS:
        if filesize > settings.max_image_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Image too large. Max {settings.max_image_upload_bytes // 1024 // 1024}MB allowed."
            )
    elif ext in VIDEO_EXTENSIONS:
        if filesize > settings.max_video_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Video too large. Max {settings.max_video_upload_bytes // 1024 // 1024}MB allowed."
            )
    elif ext in AUDIO_EXTENSIONS:
        if filesize > settings.max_audio_upload_bytes:
            raise HTTPException(
                status_code=413,
                detail=f"Audio too large. Max {settings.max_audio_upload_bytes // 1024 // 1024}MB allowed."
            )
    else:
        raise HTTPException(status_code=415, detail="Unsupported file format.")

    if filesize == 0:
        raise HTTPException(status_code=400, detail="Empty file.")

    # Audio is forwarded as-is; the detection service decodes it
    if file_path and ext not in AUDIO_EXTENSIONS:
        try:
            if ext in IMAGE_EXTENSIONS:
                with Image.open(file_path) as img:
                    img.verify()
                    with Image.open(file_path) as img2:
                        actual_format = img2.format.lower()
                        if actual_format == 'jpeg':
                            actual_format = 'jpg'
                        if actual_format not in ['jpg', 'png', 'webp', 'gif', 'tiff', 'bmp']:
                            raise ValueError(f"Format mismatch: {actual_format}")
            else:
                cap = cv2.VideoCapture(file_path)
                if not cap.isOpened():
                    raise ValueError("Could not open video stream")
                ret, _ = cap.read()
                cap.release()
                if not ret:
                    raise ValueError("Could not read video frames")
        except Exception as e:
            logger.error(sanitize_log_message(f"Corrupted or mislabelled file detected ({filename}): {e}"))
            raise HTTPException(status_code=400, detail="Invalid file content or format mismatch.")

    return True


def sanitize_log_message(message: str) -> str:
    """Strip sensitive file paths and upstream keys from log messages."""
    msg = re.sub(r'\/[^\s]+\/tmp[a-zA-Z0-9_]+', '[TEMP_FILE]', message)
    msg = re.sub(r'\/[^\s]+\/([^\/\s]+)', r'.../\1', msg)
    if settings.rd_api_key:
        msg = msg.replace(settings.rd_api_key, '[REDACTED]')
    return msg
