import pytest

from zipfold import (
    CompressionError,
    ZipfoldError,
    compress_and_dump,
    compress_file,
    read_all_bytes,
    sidecar_path,
    write_text,
)


def test_sidecar_appends_extension(tmp_path):
    assert sidecar_path(tmp_path / "report.txt") == tmp_path / "report.txt.zr"
    assert sidecar_path("noext").name == "noext.zr"


def test_compress_and_dump_single_byte(tmp_path):
    src = tmp_path / "one.bin"
    src.write_bytes(b"\x59")
    target = compress_and_dump(src)
    assert target == tmp_path / "one.bin.zr"
    assert target.read_text() == "1"


def test_compress_and_dump_empty_file(tmp_path):
    src = tmp_path / "empty"
    src.write_bytes(b"")
    target = compress_and_dump(str(src))
    assert target.read_bytes() == b"0"


def test_compress_file_writes_nothing(tmp_path):
    src = tmp_path / "data.txt"
    src.write_bytes(b"hello")
    assert compress_file(src) == 1
    assert not sidecar_path(src).exists()


def test_missing_file_is_wrapped(tmp_path):
    src = tmp_path / "missing.txt"
    with pytest.raises(CompressionError) as excinfo:
        compress_and_dump(src)
    assert excinfo.value.path == src
    assert isinstance(excinfo.value.__cause__, FileNotFoundError)
    assert str(src) in str(excinfo.value)
    assert not sidecar_path(src).exists()


def test_unwritable_sidecar_is_wrapped(tmp_path):
    src = tmp_path / "data.txt"
    src.write_bytes(b"\xff")
    sidecar_path(src).mkdir()
    with pytest.raises(CompressionError) as excinfo:
        compress_and_dump(src)
    assert excinfo.value.path == src
    assert excinfo.value.target == sidecar_path(src)
    assert isinstance(excinfo.value.__cause__, OSError)


def test_adapter_errors_share_base(tmp_path):
    with pytest.raises(ZipfoldError):
        read_all_bytes(tmp_path / "nope")
    with pytest.raises(ZipfoldError):
        write_text(tmp_path / "nodir" / "out.zr", "1")


def test_write_text_has_no_newline(tmp_path):
    out = tmp_path / "out.zr"
    write_text(out, "ff")
    assert out.read_bytes() == b"ff"
