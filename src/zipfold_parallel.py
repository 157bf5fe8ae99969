from functools import partial
from multiprocessing import Pool, cpu_count

from zipfold import as_byte_array, fold_once

CHUNK_SIZE = 1024 * 1024 * 4


def fold_parallel(data, workers=None, chunk_size=CHUNK_SIZE) -> int:
    """Fold contiguous chunks in worker processes and add up the partial sums."""
    if workers is None:
        workers = cpu_count()
    arr = as_byte_array(data)
    if workers <= 1 or arr.size <= chunk_size:
        return fold_once(arr)

    chunks = [arr[start:start + chunk_size] for start in range(0, arr.size, chunk_size)]
    with Pool(processes=min(workers, len(chunks))) as pool:
        return sum(pool.map(fold_once, chunks))


def make_parallel_fold(workers=None, chunk_size=CHUNK_SIZE):
    return partial(fold_parallel, workers=workers, chunk_size=chunk_size)
