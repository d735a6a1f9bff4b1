"""
Test environment. Settings are read at import time, so the environment is
prepared before anything from ``app`` is imported.
"""
import io
import os
import tempfile

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_pixelift.db")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="pixelift-uploads-"))
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RESEND_API_KEY", "")
os.environ.setdefault("FAL_API_KEY", "test-fal-key")

import pytest
from PIL import Image


def make_png(width: int = 8, height: int = 6, color=(200, 40, 40)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def png_bytes():
    return make_png()


@pytest.fixture
def make_image():
    return make_png
