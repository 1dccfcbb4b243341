"""A CPU sparse hash embedding, used as a reference for checking results.

The hash table file holds ``vocabulary_size`` tiles, each a little-endian
int64 key followed by ``embedding_vec_size`` float32 values. The tile at
position ``i`` gets value index ``i``. The CSR data file starts with a
32-byte dataset header; every record then holds ``label_dim`` int32 labels
and, for each slot, an int32 count followed by that many int64 keys.
"""

from __future__ import annotations

import math
import struct
from typing import BinaryIO

import numpy as np

from ctrkit import embedding_kernels as kernels
from ctrkit.common import (
    HugeCTRError,
    IllegalCallError,
    OutOfBoundError,
    WrongInputError,
)
from ctrkit.criteo import DataSetHeader
from ctrkit.embedding_params import Combiner, Optimizer

_INT32 = struct.Struct("<i")
_KEY_DTYPE = np.dtype("<i8")
_HEADER_SIZE = len(DataSetHeader(0, 0, 0).pack())


def _read_exact(stream: BinaryIO, size: int, what: str) -> bytes:
    data = stream.read(size)
    if len(data) != size:
        raise WrongInputError(f"csr stream ended while reading {what}")
    return data


class SparseEmbeddingHashCpu:
    """Embedding lookup, gradients and optimizer steps over one hash table."""

    adam_beta1 = np.float32(0.9)
    adam_beta2 = np.float32(0.999)
    adam_epsilon = np.float32(1e-8)
    momentum_factor = np.float32(0.9)
    nesterov_mu = np.float32(0.9)

    def __init__(
        self,
        batchsize: int,
        max_feature_num: int,
        vocabulary_size: int,
        embedding_vec_size: int,
        slot_num: int,
        combiner: Combiner | int,
        optimizer: Optimizer | int,
        lr: float,
        hash_table_stream: BinaryIO,
        csr_stream: BinaryIO,
        label_dim: int,
    ) -> None:
        if batchsize < 1 or slot_num < 1 or embedding_vec_size < 1:
            raise WrongInputError("batchsize < 1 || slot_num < 1 || embedding_vec_size < 1")
        if vocabulary_size < 1 or max_feature_num < 0 or label_dim < 0:
            raise WrongInputError("invalid vocabulary_size, max_feature_num or label_dim")
        try:
            self._combiner = Combiner(combiner)
        except ValueError as err:
            raise WrongInputError(f"combiner not supported: {combiner}") from err
        try:
            self._optimizer = Optimizer(optimizer)
        except ValueError as err:
            raise WrongInputError(f"optimizer not supported: {optimizer}") from err

        self.batchsize = batchsize
        self.max_feature_num = max_feature_num
        self.vocabulary_size = vocabulary_size
        self.embedding_vec_size = embedding_vec_size
        self.slot_num = slot_num
        self.lr = float(lr)
        self.label_dim = label_dim
        self.times = 0

        tile_dtype = np.dtype([("key", _KEY_DTYPE), ("value", "<f4", (embedding_vec_size,))])
        required = vocabulary_size * tile_dtype.itemsize
        hash_table_stream.seek(0, 2)
        file_size = hash_table_stream.tell()
        hash_table_stream.seek(0)
        if file_size < required:
            raise WrongInputError(
                "hash table file size is smaller than embedding_table_size required"
            )
        tiles = np.frombuffer(hash_table_stream.read(required), dtype=tile_dtype)

        self._hash_table_key = tiles["key"].astype(np.int64)
        self._hash_table_value = tiles["value"].astype(np.float32).reshape(
            vocabulary_size, embedding_vec_size
        )
        self._hash_table_value_index = np.arange(vocabulary_size, dtype=np.int64)
        self._index = {int(key): i for i, key in enumerate(self._hash_table_key)}

        self._csr_stream = csr_stream
        self._csr_offset = _HEADER_SIZE

        shape = self._hash_table_value.shape
        self._opt_m = np.zeros(shape, dtype=np.float32)
        self._opt_v = np.zeros(shape, dtype=np.float32)
        self._opt_momentum = np.zeros(shape, dtype=np.float32)
        self._opt_accm = np.zeros(shape, dtype=np.float32)

        self._row_offset = np.zeros(1, dtype=np.int64)
        self._hash_key = np.zeros(0, dtype=np.int64)
        self._embedding_feature: np.ndarray | None = None
        self._wgrad: np.ndarray | None = None

    @property
    def combiner(self) -> Combiner:
        return self._combiner

    @property
    def optimizer(self) -> Optimizer:
        return self._optimizer

    @property
    def row_offset(self) -> np.ndarray:
        """Row offsets of the current batch, one row per sample and slot."""
        return self._row_offset

    @property
    def hash_key(self) -> np.ndarray:
        """Keys of the current batch in row order."""
        return self._hash_key

    @property
    def hash_table_key(self) -> np.ndarray:
        return self._hash_table_key

    @property
    def hash_table_value_index(self) -> np.ndarray:
        return self._hash_table_value_index

    @property
    def hash_table_value(self) -> np.ndarray:
        """The embedding table, one row per value index."""
        return self._hash_table_value

    @property
    def embedding_feature(self) -> np.ndarray:
        if self._embedding_feature is None:
            raise IllegalCallError("forward() has not been called")
        return self._embedding_feature

    @property
    def wgrad(self) -> np.ndarray:
        if self._wgrad is None:
            raise IllegalCallError("backward() has not been called")
        return self._wgrad

    def load_data_from_csr(self) -> None:
        """Read the next batch of records from the CSR stream."""
        stream = self._csr_stream
        stream.seek(self._csr_offset)
        capacity = self.batchsize * self.max_feature_num
        offsets = [0]
        chunks: list[np.ndarray] = []
        total = 0
        for _ in range(self.batchsize):
            _read_exact(stream, self.label_dim * _INT32.size, "labels")
            for _ in range(self.slot_num):
                (nnz,) = _INT32.unpack(_read_exact(stream, _INT32.size, "a key count"))
                if nnz < 0:
                    raise WrongInputError(f"negative key count: {nnz}")
                if total + nnz > capacity:
                    raise OutOfBoundError("batch holds more features than max_feature_num allows")
                data = _read_exact(stream, nnz * _KEY_DTYPE.itemsize, "keys")
                chunks.append(np.frombuffer(data, dtype=_KEY_DTYPE).astype(np.int64))
                total += nnz
                offsets.append(total)
        self._csr_offset = stream.tell()
        self._row_offset = np.array(offsets, dtype=np.int64)
        self._hash_key = (
            np.concatenate(chunks) if chunks else np.zeros(0, dtype=np.int64)
        )

    def _lookup(self, keys: np.ndarray) -> np.ndarray:
        try:
            return np.fromiter(
                (self._index[int(key)] for key in keys), dtype=np.int64, count=keys.size
            )
        except KeyError as err:
            raise WrongInputError(f"key not in hash table: {err.args[0]}") from err

    def forward(self) -> np.ndarray:
        """Load a batch and combine its embedding vectors per sample and slot."""
        self.load_data_from_csr()
        indices = self._lookup(self._hash_key)
        combine = kernels.forward_sum if self._combiner is Combiner.SUM else kernels.forward_mean
        self._embedding_feature = combine(
            self._row_offset, indices, self._hash_table_value, self.embedding_vec_size
        )
        self._wgrad = None
        return self._embedding_feature

    def backward(self) -> np.ndarray:
        """Compute wgrad, using the forward output as the top gradient."""
        top_grad = self.embedding_feature
        if self._combiner is Combiner.SUM:
            self._wgrad = kernels.backward_sum(top_grad)
        else:
            self._wgrad = kernels.backward_mean(self._row_offset, top_grad)
        return self._wgrad

    def update_params(self) -> None:
        """Apply one optimizer step to the rows touched by the current batch."""
        wgrad = self.wgrad
        sample_id = kernels.csr_extend(self._row_offset)
        indices = self._lookup(self._hash_key)
        sorted_index, sorted_sample = kernels.odd_even_sort(indices, sample_id)
        undup, undup_offset = kernels.unduplicate(sorted_index)

        if self._optimizer is Optimizer.ADAM:
            self.times += 1
            beta1 = float(self.adam_beta1)
            beta2 = float(self.adam_beta2)
            alpha_t = (
                self.lr
                * math.sqrt(1.0 - beta2**self.times)
                / (1.0 - beta1**self.times)
            )
            self._hash_table_value, self._opt_m, self._opt_v = kernels.optimizer_adam(
                undup,
                undup_offset,
                sorted_sample,
                wgrad,
                self._hash_table_value,
                self._opt_m,
                self._opt_v,
                alpha_t,
                self.adam_beta1,
                self.adam_beta2,
                self.adam_epsilon,
            )
        elif self._optimizer is Optimizer.MOMENTUM_SGD:
            self._hash_table_value, self._opt_momentum = kernels.optimizer_momentum(
                undup,
                undup_offset,
                sorted_sample,
                wgrad,
                self._hash_table_value,
                self._opt_momentum,
                self.momentum_factor,
                self.lr,
            )
        elif self._optimizer is Optimizer.NESTEROV:
            self._hash_table_value, self._opt_accm = kernels.optimizer_nesterov(
                undup,
                undup_offset,
                sorted_sample,
                wgrad,
                self._hash_table_value,
                self._opt_accm,
                self.nesterov_mu,
                self.lr,
            )
        else:  # pragma: no cover - guarded in __init__
            raise HugeCTRError(f"optimizer not supported: {self._optimizer}")