import numpy as np
import pyopencl as cl

from zipfold import ZipfoldError, as_byte_array

BATCH_SIZE = 1024 * 1024 * 16  # bytes per kernel launch; 8 * BATCH_SIZE fits a uint

popcount_kernel_code = """
__kernel void fold_popcount(__global const uchar *data, const uint length, __global uint *total) {
    uint gid = get_global_id(0);
    if (gid < length) {
        atomic_add(total, (uint)popcount(data[gid]));
    }
}
"""


class OpenCLFolder:
    """Fold pass on an OpenCL device, one work item per byte."""

    def __init__(self, interactive=False):
        try:
            self.ctx = cl.create_some_context(interactive=interactive)
        except (cl.Error, RuntimeError) as exc:
            raise ZipfoldError(f"No OpenCL device available: {exc}") from exc
        self.queue = cl.CommandQueue(self.ctx)
        self.prg = cl.Program(self.ctx, popcount_kernel_code).build()

    def __call__(self, data) -> int:
        arr = as_byte_array(data)
        mf = cl.mem_flags
        total = 0
        for start in range(0, arr.size, BATCH_SIZE):
            batch = np.ascontiguousarray(arr[start:start + BATCH_SIZE])
            acc = np.zeros(1, dtype=np.uint32)
            data_buf = cl.Buffer(self.ctx, mf.READ_ONLY | mf.COPY_HOST_PTR, hostbuf=batch)
            acc_buf = cl.Buffer(self.ctx, mf.READ_WRITE | mf.COPY_HOST_PTR, hostbuf=acc)

            self.prg.fold_popcount(self.queue, (batch.size,), None, data_buf, np.uint32(batch.size), acc_buf)
            cl.enqueue_copy(self.queue, acc, acc_buf).wait()
            total += int(acc[0])
        return total
