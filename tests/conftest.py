"""
Pytest configuration and shared fixtures
"""

import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

# Add the root directory to the path for imports
root_dir = Path(__file__).parent.parent
sys.path.insert(0, str(root_dir))

FIXTURES_DIR = Path(__file__).parent / "fixtures"


def load_fixture(name: str) -> str:
    with open(FIXTURES_DIR / name, "r", encoding="utf-8") as f:
        return f.read()


class ScriptedPrompter:
    """Prompter answering from a fixed list and recording every question"""

    def __init__(self, answers=()):
        self.answers = list(answers)
        self.prompts = []

    def ask(self, message: str) -> str:
        self.prompts.append(message)
        if not self.answers:
            raise AssertionError(f"Unexpected prompt: {message}")
        return self.answers.pop(0)


class FixedCaptchaSolver:
    def __init__(self, code: str = "AB12"):
        self.code = code
        self.images = []

    def solve(self, image: bytes) -> str:
        self.images.append(image)
        return self.code


def make_response(text: str = "", content: bytes = b"", status_code: int = 200):
    response = MagicMock()
    response.text = text
    response.content = content
    response.status_code = status_code
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def prompter():
    return ScriptedPrompter()


@pytest.fixture
def captcha_solver():
    return FixedCaptchaSolver()


@pytest.fixture
def mock_session():
    """Session double: GET serves the booking page or the captcha image"""
    session = MagicMock()
    session.save_responses = False
    session.cookies.get.return_value = "ABC123"

    booking_page = load_fixture("booking_page.html")

    def get(url, **kwargs):
        if "IResourceListener" in url:
            return make_response(content=b"\xff\xd8captcha")
        return make_response(text=booking_page)

    session.get.side_effect = get
    return session
