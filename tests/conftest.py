import importlib

import pytest

from axis_kernel.actions import ActionInterpreter
from axis_kernel.actions.web import SearchResult
from axis_kernel.config import DEFAULT_PROFILES_PATH, Settings
from axis_kernel.errors import CapabilityError
from axis_kernel.memory import MemoryIndex
from axis_kernel.model import WorkerRegistry, load_profile_catalog
from axis_kernel.model_fetchers import BaseFetcher
from axis_kernel.orchestrator import Orchestrator, SessionAssembler
from axis_kernel.storage import HistoryLog


def pytest_configure(config):
    config.addinivalue_line(
        "markers",
        "requires(*modules): skip if required modules are missing",
    )


def pytest_runtest_setup(item):
    marker = item.get_closest_marker("requires")
    if marker:
        missing = []
        for mod in marker.args:
            try:
                importlib.import_module(mod)
            except ImportError:
                missing.append(mod)
        if missing:
            pytest.skip("Missing required modules: " + ", ".join(missing))


class FakeFetcher(BaseFetcher):
    """Scripted fetcher; the last reply repeats once the others are used up."""

    provider = "fake"

    def __init__(self, name, replies=None, error=None):
        super().__init__(name, endpoint="http://fake.invalid", model=f"{name}-model")
        self.replies = list(replies or [f"{name} reply"])
        self.error = error
        self.calls = []

    async def _generate(self, system_prompt, user_text, temperature):
        self.calls.append((system_prompt, user_text, temperature))
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0]


def make_registry(**fetchers):
    base = {key: FakeFetcher(key) for key in ("gpt", "gemini", "grok", "llama")}
    base.update(fetchers)
    return WorkerRegistry(fetchers=base)


class FakeCapabilities:
    def __init__(self, apps=None, screenshot="aW1hZ2U=", screen_error=None):
        self.apps = list(apps or [])
        self.screenshot = screenshot
        self.screen_error = screen_error
        self.calls = []

    def launch_app(self, name):
        self.calls.append(("launch", name))
        return f"Success: Launched {name}."

    def type_text(self, text, target=None):
        self.calls.append(("type", text, target))
        if target:
            return f"Focused '{target}' and Typed: '{text}'"
        return f"Typed: '{text}'"

    def press_key(self, name):
        self.calls.append(("press", name))
        if name.lower() not in ("enter", "tab", "esc"):
            return "Error: Unknown key."
        return f"Pressed: [{name}]"

    def capture_screenshot(self):
        self.calls.append(("look",))
        if self.screen_error is not None:
            raise CapabilityError(self.screen_error)
        return self.screenshot

    def list_running_apps(self):
        self.calls.append(("apps",))
        return list(self.apps)


class FakeSearch:
    def __init__(self, name, results=None, error=None):
        self.name = name
        self.results = [SearchResult(title=t, link=l) for t, l in (results or [])]
        self.error = error
        self.queries = []

    async def search(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise CapabilityError(self.error)
        return list(self.results)


@pytest.fixture(autouse=True)
def isolated_logs(tmp_path, monkeypatch):
    monkeypatch.setenv("AXIS_LOG_PATH", str(tmp_path / "logs"))
    monkeypatch.delenv("AXIS_LOG_DB_PATH", raising=False)
    monkeypatch.delenv("AXIS_SCORE_WEIGHTS", raising=False)
    monkeypatch.delenv("AXIS_CONFIG_FILE", raising=False)
    return tmp_path / "logs"


@pytest.fixture
def settings(tmp_path):
    return Settings(data_dir=tmp_path / "data", output_dir=tmp_path / "out", _env_file=None)


@pytest.fixture
def catalog():
    return load_profile_catalog(DEFAULT_PROFILES_PATH)


@pytest.fixture
def build_orchestrator(settings, catalog):
    def _build(registry, *, capabilities=None, search_providers=(), relational=None, settings_obj=None):
        cfg = settings_obj or settings
        assembler = SessionAssembler(
            HistoryLog(cfg.history_path),
            MemoryIndex(cfg.memory_dir),
            relational,
        )
        interpreter = ActionInterpreter(
            registry,
            capabilities or FakeCapabilities(),
            list(search_providers),
            cfg.output_dir,
        )
        return Orchestrator(cfg, registry, catalog, assembler, interpreter)

    return _build
