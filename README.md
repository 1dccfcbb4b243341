# ctrkit

Building blocks for click-through-rate (CTR) models, all running on the CPU
with NumPy:

- `ctrkit.csr.CSR`: a fixed-capacity buffer of row offsets and values for
  sparse samples.
- `ctrkit.buffer.GeneralBuffer` and `ctrkit.tensor.Tensor`: reserve space
  first, allocate it zero-filled in one go, and use tensors as shaped views
  into the shared buffer. `print_buffer` and `print_tensor` print a range of
  elements; negative bounds count from the end.
- `ctrkit.device_map.DeviceMap`: maps global ids, local ids, GPU ids and
  process ids across nodes.
- `ctrkit.embedding_params`: the `Optimizer` and `Combiner` enums, optimizer
  hyperparameter dataclasses, `SparseEmbeddingHashParams` and
  `embedding_output_dims`.
- `ctrkit.embedding_kernels`: sum/mean lookup, their gradients, and Adam,
  momentum SGD and Nesterov updates on the touched rows of a table.
- `ctrkit.sparse_embedding_cpu.SparseEmbeddingHashCpu`: a reference hash-table
  embedding that reads a table file and a CSR data file.
- `ctrkit.criteo`: converts Criteo-style text samples to the binary dataset
  format.

Errors are raised as subclasses of `ctrkit.common.HugeCTRError`
(`WrongInputError`, `OutOfBoundError`, `IllegalCallError`,
`NotInitializedError`).

## Installation

```
pip install .
```

## Converting Criteo data

Each input line holds a label followed by 39 integer keys, separated by
single spaces. Only newline-terminated lines are converted.

```
ctrkit-criteo in.txt out/prefix file_list.txt
ctrkit-criteo in.txt out/prefix file_list.txt --slot-num 10 --records-per-file 1000
```

This writes `out/prefix0.data`, `out/prefix1.data`, ... with at most
`--records-per-file` samples each (default 40960); the directory part of the
prefix is created if needed. Keys go into slot `key % slot_num`. Every file
starts with a 32-byte header (`DataSetHeader`: record count, label dim,
slot count, reserved, as little-endian int64), then per sample an int32 label
and, for each slot, an int32 count followed by that many int64 keys.

The file list's first line is the number of full data files, followed by
every data file name, the last (partial, possibly empty) one included.

From Python:

```python
from ctrkit.criteo import convert, encode_sample

names = convert("in.txt", "out/prefix", "file_list.txt", slot_num=10)
```

## CSR buffers

```python
import numpy as np
from ctrkit.csr import CSR

csr = CSR(num_rows=3, max_value_size=9, dtype=np.int64)
for row in ([4, 5, 1, 2], [3, 5, 1], [3, 2]):
    csr.new_row()
    for value in row:
        csr.push_back(value)
csr.new_row()
csr.row_offsets()  # [0, 4, 7, 9]
csr.values()       # [4, 5, 1, 2, 3, 5, 1, 3, 2]
```

Only `int64` and `uint32` are accepted; exceeding the capacity raises
`OutOfBoundError`.

## Buffers and tensors

```python
import numpy as np
from ctrkit.buffer import GeneralBuffer
from ctrkit.common import TensorFormat
from ctrkit.tensor import Tensor

buf = GeneralBuffer(np.float32)
t = Tensor([4, 2, 3], buf, TensorFormat.HSW)
buf.init(device_id=0)
t.data()[:] = 1.0
flat = t.reshape([4, 6], TensorFormat.WH)  # shares the same storage
```

## Device maps

```python
from ctrkit.device_map import DeviceMap

dm = DeviceMap([[0, 1, 2, 3], [1, 2]], my_pid=1)
dm.get_global_id(2)  # 5
dm.get_pid(0)        # 0
len(dm)              # 6
```

Lookups that find nothing return -1.

## Reference sparse embedding

`SparseEmbeddingHashCpu` reads a hash table stream of `vocabulary_size`
tiles (an int64 key and `embedding_vec_size` float32 values each) and a CSR
stream in the dataset format above. `forward()` loads the next batch and
returns the combined vectors per sample and slot, `backward()` computes the
weight gradient using the forward output as top gradient, and
`update_params()` applies one optimizer step.

## What it does not do

There is no GPU support, no multi-process data exchange, no dense network
layers, no configuration-file parser and no training session: `DeviceMap`
and `GeneralBuffer` only keep ids and host memory.

## Tests

```
pip install .[test]
pytest
```