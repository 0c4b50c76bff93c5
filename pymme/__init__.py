"""
pyMME: mixed model equations for quantitative genetics

Builds the incidence matrices and normal equations of single- and
multi-trait linear mixed models, with pedigree-based additive genetic
effects, from model equations written as text.
"""

from .core import MME, get_mme, effect_names
from .control import MMEControl
from .model import build_model, set_covariate, set_random
from .pedigree import Pedigree, RelationshipProvider
from .terms import ModelTerm, LevelIndex, BlockInfo
from .variance import ResidualStructure, MissingPatternResidual, mk_ri, add_a, add_lambdas
from .plotting import plot_mme

__version__ = "0.1"
__author__ = "Python pyMME Implementation"

__all__ = [
    "MME",
    "MMEControl",
    "ModelTerm",
    "LevelIndex",
    "BlockInfo",
    "Pedigree",
    "RelationshipProvider",
    "ResidualStructure",
    "MissingPatternResidual",
    "build_model",
    "set_covariate",
    "set_random",
    "get_mme",
    "effect_names",
    "mk_ri",
    "add_a",
    "add_lambdas",
    "plot_mme",
]
