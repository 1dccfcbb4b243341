"""Configuration of sparse hash embeddings and their optimizers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from ctrkit.common import WrongInputError


class Optimizer(enum.IntEnum):
    ADAM = 0
    MOMENTUM_SGD = 1
    NESTEROV = 2


class Combiner(enum.IntEnum):
    SUM = 0
    MEAN = 1


@dataclass
class AdamOptHyperParams:
    times: int = 0
    alpha_t: float = 0.0
    beta1: float = 0.9
    beta2: float = 0.999
    epsilon: float = 1e-6


@dataclass
class MomentumSgdOptHyperParams:
    factor: float = 0.1


@dataclass
class NesterovOptHyperParams:
    mu: float = 0.9


@dataclass
class OptHyperParams:
    adam: AdamOptHyperParams = field(default_factory=AdamOptHyperParams)
    momentum: MomentumSgdOptHyperParams = field(default_factory=MomentumSgdOptHyperParams)
    nesterov: NesterovOptHyperParams = field(default_factory=NesterovOptHyperParams)


@dataclass
class OptParams:
    optimizer: Optimizer
    lr: float
    hyperparams: OptHyperParams = field(default_factory=OptHyperParams)

    def __post_init__(self) -> None:
        self.optimizer = Optimizer(self.optimizer)


@dataclass
class SparseEmbeddingHashParams:
    """Shape of a hash embedding table.

    Each GPU holds ``vocabulary_size / gpu_count / load_factor`` rows.
    """

    batch_size: int
    vocabulary_size: int
    load_factor: float
    embedding_vec_size: int
    max_feature_num: int
    slot_num: int
    combiner: Combiner
    opt_params: OptParams

    def __post_init__(self) -> None:
        self.combiner = Combiner(self.combiner)


def embedding_output_dims(
    batchsize: int, slot_num: int, embedding_vec_size: int, gpu_count: int = 1
) -> list[int]:
    """Dims of one GPU's embedding output tensor (format HSW)."""
    if batchsize < 1 or slot_num < 1 or embedding_vec_size < 1:
        raise WrongInputError("batchsize < 1 || slot_num < 1 || embedding_vec_size < 1")
    if gpu_count < 1:
        raise WrongInputError("gpu_count < 1")
    return [batchsize // gpu_count, slot_num, embedding_vec_size]