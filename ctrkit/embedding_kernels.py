"""Reference kernels of a sparse hash embedding, computed on the CPU.

Row offsets follow the CSR convention: row ``i`` holds the features
``row_offset[i]:row_offset[i + 1]``. Every function returns new arrays and
leaves its inputs untouched.
"""

from __future__ import annotations

import numpy as np

from ctrkit.common import WrongInputError


def _offsets(row_offset) -> np.ndarray:
    offsets = np.asarray(row_offset, dtype=np.int64).reshape(-1)
    if offsets.size < 1:
        raise WrongInputError("row_offset needs at least one element")
    if np.any(np.diff(offsets) < 0):
        raise WrongInputError("row_offset must be non-decreasing")
    return offsets


def _table(hash_table_value, embedding_vec_size: int) -> np.ndarray:
    if embedding_vec_size < 1:
        raise WrongInputError("embedding_vec_size must be at least 1")
    table = np.asarray(hash_table_value, dtype=np.float32)
    if table.size % embedding_vec_size:
        raise WrongInputError("hash table size is not a multiple of embedding_vec_size")
    return table.reshape(-1, embedding_vec_size)


def _segment_sums(offsets, indices, table) -> np.ndarray:
    out = np.zeros((offsets.size - 1, table.shape[1]), dtype=np.float32)
    for row, (start, end) in enumerate(zip(offsets[:-1], offsets[1:])):
        if end > start:
            out[row] = table[indices[start:end]].sum(axis=0, dtype=np.float32)
    return out


def forward_sum(row_offset, hash_value_index, hash_table_value, embedding_vec_size):
    """Sum the embedding vectors of each row's features."""
    offsets = _offsets(row_offset)
    indices = np.asarray(hash_value_index, dtype=np.int64)
    return _segment_sums(offsets, indices, _table(hash_table_value, embedding_vec_size))


def forward_mean(row_offset, hash_value_index, hash_table_value, embedding_vec_size):
    """Average the embedding vectors of each row's features."""
    offsets = _offsets(row_offset)
    indices = np.asarray(hash_value_index, dtype=np.int64)
    sums = _segment_sums(offsets, indices, _table(hash_table_value, embedding_vec_size))
    counts = np.diff(offsets)
    divisor = np.where(counts > 1, counts, 1).astype(np.float32)
    return (sums / divisor[:, None]).astype(np.float32)


def backward_sum(top_grad):
    """Gradient of the sum combiner: the top gradient itself."""
    return np.array(top_grad, dtype=np.float32)


def backward_mean(row_offset, top_grad):
    """Gradient of the mean combiner: the top gradient scaled by 1/count."""
    offsets = _offsets(row_offset)
    grad = np.asarray(top_grad, dtype=np.float32)
    if grad.ndim != 2 or grad.shape[0] != offsets.size - 1:
        raise WrongInputError("top_grad must have one row per CSR row")
    counts = np.diff(offsets)
    scale = np.ones(counts.size, dtype=np.float32)
    many = counts > 1
    scale[many] = np.float32(1.0) / counts[many].astype(np.float32)
    return (grad * scale[:, None]).astype(np.float32)


def csr_extend(row_offset):
    """Row id of every feature, in feature order."""
    offsets = _offsets(row_offset)
    counts = np.diff(offsets)
    return np.repeat(np.arange(counts.size, dtype=np.int64), counts)


def odd_even_sort(keys, pairs):
    """Sort ``keys`` ascending, carrying ``pairs`` along; return both.

    Equal keys keep their order, as in an odd-even transposition sort.
    """
    keys = np.asarray(keys)
    pairs = np.asarray(pairs)
    if keys.shape[0] > pairs.shape[0]:
        raise WrongInputError("pairs must be at least as long as keys")
    order = np.argsort(keys, kind="stable")
    sorted_pairs = pairs.copy()
    sorted_pairs[: order.size] = pairs[order]
    return keys[order], sorted_pairs


def unduplicate(hash_value_index):
    """Collapse runs of equal sorted indices.

    Returns the distinct indices and the offsets where each run starts,
    followed by the total length.
    """
    index = np.asarray(hash_value_index, dtype=np.int64)
    if index.size == 0:
        return index.copy(), np.zeros(1, dtype=np.int64)
    starts = np.concatenate(([0], np.flatnonzero(index[1:] != index[:-1]) + 1))
    offsets = np.concatenate((starts, [index.size])).astype(np.int64)
    return index[starts], offsets


def _grouped_gradients(undup_offset, sample_id, wgrad) -> np.ndarray:
    offsets = _offsets(undup_offset)
    samples = np.asarray(sample_id, dtype=np.int64)
    grad = np.asarray(wgrad, dtype=np.float32)
    if grad.ndim != 2:
        raise WrongInputError("wgrad must be two-dimensional")
    return _segment_sums(offsets, samples, grad)


def _prepare(undup, undup_offset, sample_id, wgrad, hash_table_value, *states):
    rows = np.asarray(undup, dtype=np.int64)
    gi = _grouped_gradients(undup_offset, sample_id, wgrad)
    if gi.shape[0] != rows.size:
        raise WrongInputError("undup_offset must have one more element than undup")
    vec = gi.shape[1]
    shape = np.shape(hash_table_value)
    table = _table(hash_table_value, vec).copy()
    copies = [_table(state, vec).copy() for state in states]
    return rows, gi, shape, table, copies


def optimizer_adam(
    undup, undup_offset, sample_id, wgrad, hash_table_value, m, v, alpha_t, beta1, beta2, epsilon
):
    """One Adam step on the touched rows; return ``(table, m, v)``."""
    rows, gi, shape, table, (m_new, v_new) = _prepare(
        undup, undup_offset, sample_id, wgrad, hash_table_value, m, v
    )
    b1, b2 = np.float32(beta1), np.float32(beta2)
    one = np.float32(1.0)
    mi = b1 * m_new[rows] + (one - b1) * gi
    vi = b2 * v_new[rows] + (one - b2) * gi * gi
    m_new[rows] = mi
    v_new[rows] = vi
    table[rows] += -np.float32(alpha_t) * mi / (np.sqrt(vi) + np.float32(epsilon))
    return table.reshape(shape), m_new.reshape(np.shape(m)), v_new.reshape(np.shape(v))


def optimizer_momentum(
    undup, undup_offset, sample_id, wgrad, hash_table_value, momentum, factor, lr
):
    """One momentum SGD step on the touched rows; return ``(table, momentum)``."""
    rows, gi, shape, table, (mom,) = _prepare(
        undup, undup_offset, sample_id, wgrad, hash_table_value, momentum
    )
    mo = np.float32(factor) * mom[rows] - np.float32(lr) * gi
    mom[rows] = mo
    table[rows] += mo
    return table.reshape(shape), mom.reshape(np.shape(momentum))


def optimizer_nesterov(undup, undup_offset, sample_id, wgrad, hash_table_value, accm, mu, lr):
    """One Nesterov step on the touched rows; return ``(table, accm)``."""
    rows, gi, shape, table, (acc,) = _prepare(
        undup, undup_offset, sample_id, wgrad, hash_table_value, accm
    )
    mu32 = np.float32(mu)
    old = acc[rows]
    new = mu32 * old - np.float32(lr) * gi
    acc[rows] = new
    table[rows] += -mu32 * old + (np.float32(1.0) + mu32) * new
    return table.reshape(shape), acc.reshape(np.shape(accm))