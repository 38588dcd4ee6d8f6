"""
Tests for validating manifests and generating code.
"""

import json
import sys

import pytest

from fmlgen.fml_runner import BinaryLocator, FmlRunner
from fmlgen.fmlgen_exceptions import ConfigurationError, SubprocessFailure
from tests.test_utils import FakeSession, checksum_for, make_archive

RECORDER = """\
import json, os, sys
with open(sys.argv[1], "a") as f:
    f.write(json.dumps({"cwd": os.getcwd(), "args": sys.argv[2:]}) + "\\n")
sys.exit(5 if os.environ.get("FAIL_VALIDATE") and sys.argv[2] == "validate" else 0)
"""


class StubLocator:
    def __init__(self, prefix):
        self.prefix = prefix
        self.calls = 0

    def command_prefix(self):
        self.calls += 1
        return self.prefix


@pytest.fixture
def recorder(tmp_path):
    script = tmp_path / "recorder.py"
    script.write_text(RECORDER)
    log = tmp_path / "calls.log"
    return StubLocator([sys.executable, str(script), str(log)]), log


def read_calls(log):
    return [json.loads(line) for line in log.read_text().splitlines()]


class TestFmlRunner:
    """Tests for FmlRunner."""

    def test_validates_then_generates(self, config, logger, recorder, source_root):
        locator, log = recorder

        FmlRunner(config, logger, locator=locator).run()

        calls = read_calls(log)
        cache_dir = str(source_root / "build" / "nimbus" / "fml-cache")
        assert calls[0]["args"] == ["validate", "--cache-dir", cache_dir, "MyApp/nimbus.fml.yaml"]
        assert calls[1]["args"] == [
            "generate",
            "--channel",
            "developer",
            "--language",
            "swift",
            "--cache-dir",
            cache_dir,
            "MyApp",
            "MyApp/Generated",
        ]
        assert all(call["cwd"] == str(source_root) for call in calls)
        assert (source_root / "MyApp" / "Generated").is_dir()

    def test_generates_each_module(self, config, logger, recorder, source_root):
        locator, log = recorder
        (source_root / "Shared").mkdir()
        (source_root / "Shared" / "shared.fml.yaml").write_text("features: {}\n")
        config = config.model_copy(
            update={"modules": ["MyApp", "Shared/shared.fml.yaml"], "repo_files": ["repos.json"]}
        )

        FmlRunner(config, logger, locator=locator).run()

        generate_calls = [call["args"] for call in read_calls(log)[1:]]
        assert [args[-2:] for args in generate_calls] == [
            ["MyApp", "MyApp/Generated"],
            ["Shared/shared.fml.yaml", "MyApp/Generated"],
        ]
        assert all(args[1:3] == ["--repo-file", "repos.json"] for args in generate_calls)

    def test_output_override(self, config, logger, recorder, source_root):
        locator, log = recorder
        config = config.model_copy(update={"output_dir": "Client/Generated/FML"})

        FmlRunner(config, logger, locator=locator).run()

        assert read_calls(log)[1]["args"][-1] == "Client/Generated/FML"
        assert (source_root / "Client" / "Generated" / "FML").is_dir()

    def test_channel_for_build_configuration(self, config, logger, recorder):
        locator, log = recorder
        config = config.model_copy(
            update={"build_configuration": "Release", "channels": {"Release": "release"}}
        )

        FmlRunner(config, logger, locator=locator).run()

        assert read_calls(log)[1]["args"][1:3] == ["--channel", "release"]

    def test_missing_channel_fails_before_fetching(self, config, logger, recorder):
        locator, log = recorder
        config = config.model_copy(update={"channel": None})

        with pytest.raises(ConfigurationError):
            FmlRunner(config, logger, locator=locator).run()

        assert locator.calls == 0
        assert not log.exists()

    def test_validation_failure_skips_generation(self, config, logger, recorder, monkeypatch):
        locator, log = recorder
        monkeypatch.setenv("FAIL_VALIDATE", "1")

        with pytest.raises(SubprocessFailure) as excinfo:
            FmlRunner(config, logger, locator=locator).run()

        assert excinfo.value.returncode == 5
        assert [call["args"][0] for call in read_calls(log)] == ["validate"]


class TestBinaryLocator:
    """Tests for BinaryLocator."""

    def test_local_source_runs_through_cargo(self, config, logger, tmp_path):
        checkout = tmp_path / "application-services"
        config = config.model_copy(update={"local_source": checkout})

        prefix = BinaryLocator(config, logger, home=tmp_path / "home").command_prefix()

        assert prefix == [
            str(tmp_path / "home" / ".cargo" / "bin" / "cargo"),
            "run",
            "--manifest-path",
            str(checkout / "components" / "support" / "nimbus-fml" / "Cargo.toml"),
            "--",
        ]

    def test_downloads_prebuilt_binary(self, config, logger, monkeypatch):
        archive = make_archive()
        session = FakeSession()
        base = "https://archive.example/pub/releases/121.3/"
        session.serve(base + "nimbus-fml.zip", archive)
        session.serve(base + "nimbus-fml.sha256", checksum_for(archive))
        monkeypatch.setattr("fmlgen.fmlgen_utils.PlatformUtils.get_machine", staticmethod(lambda: "x86_64"))
        config = config.model_copy(update={"version": "121.3"})

        prefix = BinaryLocator(config, logger, session=session).command_prefix()

        assert len(prefix) == 1
        assert prefix[0] == str(config.nimbus_dir / "121.3" / "bin" / "nimbus-fml")
