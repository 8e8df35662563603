"""Shared test fixtures for fill estimator tests."""

import json
import sys
from pathlib import Path

import numpy as np
import pytest

# Add parent directory to path so we can import the modules
sys.path.insert(0, str(Path(__file__).parent.parent))


@pytest.fixture
def sample_image_bytes() -> bytes:
    """Generate a small JPEG of a half-filled box."""
    import cv2

    img = np.zeros((300, 200, 3), dtype=np.uint8)
    img[:] = (235, 235, 235)  # Empty upper half

    # Rubble built up from the bottom
    cv2.rectangle(img, (10, 150), (190, 290), (90, 90, 90), -1)
    cv2.circle(img, (60, 200), 20, (40, 120, 200), -1)

    _, buf = cv2.imencode(".jpg", img, [cv2.IMWRITE_JPEG_QUALITY, 90])
    return buf.tobytes()


@pytest.fixture
def large_image_bytes() -> bytes:
    """Generate a phone-camera sized image that will trigger downscaling."""
    import cv2

    img = np.zeros((3000, 4000, 3), dtype=np.uint8)
    img[:] = (200, 200, 200)
    _, buf = cv2.imencode(".jpg", img)
    return buf.tobytes()


@pytest.fixture
def invalid_bytes() -> bytes:
    """Non-image bytes for testing graceful degradation."""
    return b"this is not an image file at all"


@pytest.fixture
def mock_json_response() -> str:
    """Model reply that follows the requested JSON format."""
    return json.dumps({"fullness": 62, "stone": 10, "plastic": 20, "other": 8})


@pytest.fixture
def mock_prose_response() -> str:
    """Model reply that ignores the JSON instruction."""
    return (
        "Looking at the box, I estimate the following:\n"
        "- Fill level: roughly 45% of the volume\n"
        "- Stone: 30%\n"
        "- Plastic: 20%\n"
        "- Other materials: 5%"
    )


@pytest.fixture
def mock_markdown_response() -> str:
    """Model reply wrapped in a markdown code fence."""
    return '```json\n{"fullness": "55%", "stone": "25%", "plastic": "15%", "other": "5%"}\n```'


@pytest.fixture
def make_completion():
    """Factory for minimal chat completions response bodies."""

    def _make(content) -> dict:
        return {
            "id": "chatcmpl-test",
            "object": "chat.completion",
            "choices": [
                {
                    "index": 0,
                    "message": {"role": "assistant", "content": content},
                    "finish_reason": "stop",
                }
            ],
        }

    return _make
