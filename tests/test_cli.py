"""
Unit Tests for the vidai CLI
"""

import json
from types import SimpleNamespace

import pytest

from vidai import __version__, cli
from vidai.chain import GenerateResult
from vidai.exceptions import OperationCancelled
from vidai.models import Generation


class FakeChain:
    calls = []
    error = None

    def __init__(self, client=None, splicer=None, work_dir=None):
        self.client = client
        self.splicer = splicer
        self.work_dir = work_dir

    def _record(self, name, *args, **kwargs):
        FakeChain.calls.append(SimpleNamespace(name=name, chain=self, args=args, kwargs=kwargs))
        if FakeChain.error is not None:
            raise FakeChain.error

    def loop(self, *args, **kwargs):
        self._record("loop", *args, **kwargs)

    def generate(self, **kwargs):
        self._record("generate", **kwargs)
        url = "https://cdn.test/gen-1.mp4"
        return GenerateResult(generation=Generation(id="task-1", url=url, normalized_url=url))

    def extend(self, *args, **kwargs):
        self._record("extend", *args, **kwargs)
        return ["https://cdn.test/gen-1.mp4", "https://cdn.test/gen-2.mp4"]


class FakeClient:
    def __enter__(self):
        return self

    def __exit__(self, *_):
        pass


@pytest.fixture(autouse=True)
def fake_chain(monkeypatch):
    FakeChain.calls = []
    FakeChain.error = None
    monkeypatch.setattr(cli, "Chain", FakeChain)
    return FakeChain


@pytest.fixture
def fake_client(monkeypatch):
    settings_seen = []

    def _client(settings):
        settings_seen.append(settings)
        return FakeClient()

    monkeypatch.setattr(cli, "_client", _client)
    return settings_seen


def test_version(capsys):
    assert cli.main(["version"]) == 0
    assert capsys.readouterr().out.strip() == __version__


def test_generate_requires_token(capsys):
    assert cli.main(["generate", "--text", "a red car"]) == 1
    assert "token is required" in capsys.readouterr().err


def test_generate_requires_input(fake_client, capsys):
    assert cli.main(["generate", "--token", "t"]) == 1
    assert "image or text" in capsys.readouterr().err


def test_generate_prints_generation(fake_client, capsys):
    code = cli.main(
        ["generate", "--token", "t", "--text", "a red car", "--model", "gen3", "--resolution", "720p",
         "--extend", "2", "--last-frame", "--image", "car.jpg"]
    )

    assert code == 0
    call = FakeChain.calls[0]
    assert call.name == "generate"
    assert call.kwargs["extend"] == 2
    assert call.kwargs["image"] == "car.jpg"
    options = call.kwargs["options"]
    assert options.model == "gen3"
    assert options.resolution == "720p"
    assert options.last_frame is True
    assert fake_client[0].token == "t"
    assert json.loads(capsys.readouterr().out)["url"] == "https://cdn.test/gen-1.mp4"


def test_extend_prints_urls(fake_client, capsys):
    code = cli.main(["extend", "--token", "t", "--input", "car.mp4", "--n", "2", "--no-interpolate"])

    assert code == 0
    call = FakeChain.calls[0]
    assert call.args == ("car.mp4", 2)
    assert call.kwargs["options"].interpolate is False
    assert capsys.readouterr().out.splitlines() == [
        "URLs:",
        "https://cdn.test/gen-1.mp4",
        "https://cdn.test/gen-2.mp4",
    ]


def test_extend_rejects_zero(fake_client, capsys):
    assert cli.main(["extend", "--token", "t", "--input", "car.mp4", "--n", "0"]) == 1
    assert FakeChain.calls == []


def test_loop_needs_no_token():
    assert cli.main(["loop", "--input", "car.mp4", "--output", "loop.mp4"]) == 0

    call = FakeChain.calls[0]
    assert call.name == "loop"
    assert call.chain.client is None
    assert call.args == ("car.mp4", "loop.mp4")


def test_cancelled_exit_code(capsys):
    FakeChain.error = OperationCancelled("operation cancelled")

    assert cli.main(["loop", "--input", "car.mp4", "--output", "loop.mp4"]) == 130
    assert "cancelled" in capsys.readouterr().err


def test_settings_from_environment(monkeypatch, fake_client):
    monkeypatch.setenv("VIDAI_TOKEN", "env-token")
    monkeypatch.setenv("VIDAI_WAIT", "4")

    assert cli.main(["extend", "--input", "car.mp4"]) == 0
    assert fake_client[0].token == "env-token"
    assert fake_client[0].wait == 4.0
