import pathlib

import pytest

from fmlgen.fmlgen_config import FmlConfig
from fmlgen.fmlgen_logger import FmlLogger

RELEASE_TEMPLATE = "https://archive.example/pub/releases/{version}/"
CI_TEMPLATE = "https://ci.example/task/nimbus-fml.{version}/artifacts/"


@pytest.fixture
def logger():
    return FmlLogger(verbose=True)


@pytest.fixture
def source_root(tmp_path) -> pathlib.Path:
    root = tmp_path / "source"
    (root / "MyApp.xcodeproj").mkdir(parents=True)
    return root


@pytest.fixture
def config(source_root) -> FmlConfig:
    return FmlConfig(
        source_root=source_root,
        project="MyApp",
        channel="developer",
        release_url_template=RELEASE_TEMPLATE,
        ci_url_template=CI_TEMPLATE,
    )
