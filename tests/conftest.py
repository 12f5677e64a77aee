from pathlib import Path
from typing import Iterator
import pytest

from machoparse import MachOFile, parse_file


def pytest_addoption(parser):
    """Allow the option to run tests against a real Mach-O binary."""
    parser.addoption(
        "--macho", action="store", help="Path to a thin Mach-O executable"
    )


@pytest.fixture(name="binfile", scope="session")
def fixture_binfile(pytestconfig) -> Iterator[MachOFile]:
    filename = pytestconfig.getoption("--macho")

    # Skip this if we have not provided the path to a binary.
    if filename is None:
        pytest.skip(allow_module_level=True, reason="No path to a Mach-O binary")

    yield parse_file(Path(filename))
