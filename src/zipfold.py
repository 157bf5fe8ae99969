import argparse
import sys
from pathlib import Path

import numpy as np

ZR_EXTENSION = ".zr"
WORD_SIZE = 8  # 64-bit fold result
MASK64 = (1 << 64) - 1
DEFAULT_MAX_ITERATIONS = 1000

# Set bit count for every byte value 0..255
POPCOUNT = np.unpackbits(np.arange(256, dtype=np.uint8)[:, None], axis=1).sum(axis=1).astype(np.uint8)


class ZipfoldError(RuntimeError):
    pass


class CompressionError(ZipfoldError):
    """A file could not be read or its sidecar could not be written."""

    def __init__(self, path, target=None):
        message = f"Cannot compress file: {path}"
        if target is not None:
            message += f" (writing {target})"
        super().__init__(message)
        self.path = path
        self.target = target


class ConvergenceError(ZipfoldError):
    def __init__(self, iterations: int, last_value: int):
        super().__init__(f"No fixed point after {iterations} fold passes (last value {last_value})")
        self.iterations = iterations
        self.last_value = last_value


def as_byte_array(data) -> np.ndarray:
    if isinstance(data, np.ndarray):
        return np.ascontiguousarray(data, dtype=np.uint8).ravel()
    return np.frombuffer(data, dtype=np.uint8)


def fold_once(data) -> int:
    """Sum the set bits of every byte in data."""
    arr = as_byte_array(data)
    if arr.size == 0:
        return 0
    return int(POPCOUNT[arr].sum(dtype=np.uint64))


def encode_big_endian(value: int) -> bytes:
    return (value & MASK64).to_bytes(WORD_SIZE, byteorder="big")


def to_hex(value: int) -> str:
    return format(value & MASK64, "x")


def reduce_bytes(data, fold=fold_once, max_iterations=None) -> int:
    """Fold data until two consecutive passes agree and return that value.

    The first pass sees the whole input; every later pass sees the 8-byte
    big-endian encoding of the previous result, so values drop to [0, 64]
    after one pass and settle within a few more. Without max_iterations
    there is no ceiling on the number of passes.
    """
    previous = 0
    iterations = 0
    while True:
        current = fold(data)
        iterations += 1
        if current == previous:
            return current
        if max_iterations is not None and iterations >= max_iterations:
            raise ConvergenceError(iterations, current)
        previous = current
        data = encode_big_endian(current)


def sidecar_path(path) -> Path:
    path = Path(path)
    return path.parent / (path.name + ZR_EXTENSION)


def read_all_bytes(path) -> bytes:
    try:
        with open(path, "rb") as fin:
            return fin.read()
    except OSError as exc:
        raise CompressionError(path) from exc


def write_text(path, text: str) -> None:
    try:
        with open(path, "w", encoding="ascii", newline="") as fout:
            fout.write(text)
    except OSError as exc:
        raise CompressionError(path) from exc


def compress_file(path, fold=fold_once, max_iterations=None) -> int:
    return reduce_bytes(read_all_bytes(path), fold=fold, max_iterations=max_iterations)


def compress_and_dump(path, fold=fold_once, max_iterations=None) -> Path:
    """Reduce the file at path and write the hex result next to it.

    Returns the sidecar path: same directory, same file name with ".zr"
    appended.
    """
    target = sidecar_path(path)
    result = compress_file(path, fold=fold, max_iterations=max_iterations)
    try:
        write_text(target, to_hex(result))
    except CompressionError as exc:
        raise CompressionError(path, target=target) from exc.__cause__
    return target


def make_fold(backend: str, workers=None):
    if backend == "cpu":
        return fold_once
    if backend == "parallel":
        from zipfold_parallel import make_parallel_fold
        return make_parallel_fold(workers=workers)
    if backend == "opencl":
        try:
            from zipfold_opencl import OpenCLFolder
        except ImportError as exc:
            raise ZipfoldError("OpenCL backend needs pyopencl: pip install zipfold[opencl]") from exc
        return OpenCLFolder()
    raise ValueError(f"Unknown backend: {backend}")


def _add_fold_arguments(parser):
    parser.add_argument("inputs", nargs="+", metavar="input", help="Input file")
    parser.add_argument("--backend", choices=["cpu", "parallel", "opencl"], default="cpu",
                        help="Fold pass implementation (default: cpu)")
    parser.add_argument("--workers", type=int, default=None,
                        help="Worker processes for the parallel backend (default: CPU count)")
    parser.add_argument("--max-iterations", type=int, default=DEFAULT_MAX_ITERATIONS,
                        help=f"Give up after this many fold passes (default: {DEFAULT_MAX_ITERATIONS})")


def _describe(exc: ZipfoldError) -> str:
    if exc.__cause__ is not None:
        return f"{exc}: {exc.__cause__}"
    return str(exc)


def run_compress(args, fold) -> int:
    failed = 0
    for path in args.inputs:
        print(f"[+] Compressing {path}...")
        try:
            target = compress_and_dump(path, fold=fold, max_iterations=args.max_iterations)
        except ZipfoldError as exc:
            print(f"[×] {_describe(exc)}", file=sys.stderr)
            failed += 1
            continue
        print(f"    ✓ {path} -> {target}")
    if failed:
        print(f"[INFO] {failed} of {len(args.inputs)} files failed", file=sys.stderr)
    return 1 if failed else 0


def run_reduce(args, fold) -> int:
    failed = 0
    for path in args.inputs:
        try:
            value = compress_file(path, fold=fold, max_iterations=args.max_iterations)
        except ZipfoldError as exc:
            print(f"[×] {_describe(exc)}", file=sys.stderr)
            failed += 1
            continue
        print(f"{to_hex(value)}  {path}")
    return 1 if failed else 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Zipfold — fixed-point bit count compressor")
    subparsers = parser.add_subparsers(dest="command")

    compress_parser = subparsers.add_parser("compress", help="Write <input>.zr with the folded value")
    _add_fold_arguments(compress_parser)

    reduce_parser = subparsers.add_parser("reduce", help="Print the folded value without writing anything")
    _add_fold_arguments(reduce_parser)

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 2

    try:
        fold = make_fold(args.backend, args.workers)
    except ZipfoldError as exc:
        print(f"[×] {_describe(exc)}", file=sys.stderr)
        return 1

    if args.command == "compress":
        return run_compress(args, fold)
    return run_reduce(args, fold)


if __name__ == "__main__":
    # backends raise zipfold.ZipfoldError, not __main__.ZipfoldError
    import zipfold
    sys.exit(zipfold.main())
