import pytest

pytest.importorskip("pyopencl")

from zipfold import ZipfoldError, fold_once, reduce_bytes  # noqa: E402
from zipfold_opencl import OpenCLFolder  # noqa: E402


@pytest.fixture(scope="module")
def folder():
    try:
        return OpenCLFolder()
    except ZipfoldError as exc:
        pytest.skip(str(exc))


def test_opencl_matches_serial(folder):
    data = bytes(range(256)) * 10
    assert folder(data) == fold_once(data)
    assert folder(b"") == 0


def test_opencl_reduce(folder):
    assert reduce_bytes(b"\x59", fold=folder) == 1
