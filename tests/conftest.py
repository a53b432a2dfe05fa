from pathlib import Path

import pytest

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture
def monads_post() -> Path:
    return FIXTURES / "2016-05-05-monads-in-swift.md"
