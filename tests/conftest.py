import pytest

from formlogic.config import EngineSettings
from formlogic.definitions import FormStore, find_repo_root
from formlogic.models import FormField


def make_field(field_id: str, field_type: str = "text", **kwargs) -> FormField:
    """Build a FormField from snake_case keyword arguments."""
    return FormField.model_validate({"id": field_id, "type": field_type, **kwargs})


@pytest.fixture
def field():
    return make_field


@pytest.fixture
def settings():
    """Default engine settings, independent of the caller's environment."""
    return EngineSettings()


@pytest.fixture(scope="session")
def forms_dir():
    return find_repo_root() / "forms"


@pytest.fixture(scope="session")
def store(forms_dir):
    """Load the sample forms once for the entire test session."""
    s = FormStore(forms_dir)
    s.load()
    return s
