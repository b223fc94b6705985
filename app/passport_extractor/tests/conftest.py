import base64
import sys
from io import BytesIO
from pathlib import Path
from typing import Callable, Dict, List

import pytest
from PIL import Image, ImageDraw, ImageFont

ROOT = Path(__file__).resolve().parents[2]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


SAMPLE_FIELDS = {
    "firstName": "JOHN",
    "lastName": "DOE",
    "dateOfBirth": "1990-01-02",
    "passportNumber": "A1234567",
    "expirationDate": "2030-01-02",
}


def _build_passport_png() -> bytes:
    img = Image.new("RGB", (600, 400), "white")
    draw = ImageDraw.Draw(img)
    font = ImageFont.load_default()
    lines = [
        "PASSPORT",
        "Surname: DOE",
        "Given names: JOHN",
        "Date of birth: 02 JAN 1990",
        "Passport No: A1234567",
    ]
    y = 40
    for line in lines:
        draw.text((40, y), line, font=font, fill="black")
        y += 30
    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture(scope="session")
def passport_png() -> bytes:
    return _build_passport_png()


@pytest.fixture(scope="session")
def passport_data_uri(passport_png: bytes) -> str:
    return "data:image/png;base64," + base64.b64encode(passport_png).decode("ascii")


@pytest.fixture
def sample_fields() -> Dict[str, str]:
    return dict(SAMPLE_FIELDS)


class StubModel:
    """Stand-in for `call_llm_json` that records prompts and replays responses."""

    def __init__(self) -> None:
        self.responses: List[object] = []
        self.prompts: List[str] = []
        self.documents: List[str] = []

    def queue(self, *responses: object) -> "StubModel":
        self.responses.extend(responses)
        return self

    def __call__(self, prompt: str, data_uri: str, config=None) -> Dict:
        self.prompts.append(prompt)
        self.documents.append(data_uri)
        if not self.responses:
            raise AssertionError("model called without a queued response")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def calls(self) -> int:
        return len(self.prompts)


@pytest.fixture
def stub_model(monkeypatch) -> StubModel:
    from passport_extractor.pipeline import llm_correct, llm_extract

    stub = StubModel()
    monkeypatch.setattr(llm_extract, "call_llm_json", stub)
    monkeypatch.setattr(llm_correct, "call_llm_json", stub)
    return stub


@pytest.fixture
def run_async() -> Callable:
    import anyio

    def _run(func, *args):
        return anyio.run(func, *args)

    return _run


@pytest.fixture
def suggestion_reply() -> Callable[..., Dict[str, List[str]]]:
    """Build a complete suggestion reply; fields not given get an empty list."""

    def _build(**lists: List[str]) -> Dict[str, List[str]]:
        reply: Dict[str, List[str]] = {name: [] for name in SAMPLE_FIELDS}
        reply.update(lists)
        return reply

    return _build
