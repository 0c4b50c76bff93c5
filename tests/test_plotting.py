"""
Test cases for MME plotting.
"""

import pytest
import numpy as np

import sys
import os
import matplotlib
matplotlib.use('Agg')  # Use non-interactive backend for testing
import matplotlib.pyplot as plt
# Add parent directory to path to find pymme package
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from pymme import build_model, set_covariate, get_mme, plot_mme
from pymme.datasets import load_toy_phenotypes


class TestPlotMME:
    """Test sparsity plots."""

    def setup_method(self):
        self.mme = build_model("BW = intercept + age + sex; CW = intercept + sex",
                               np.array([[2.0, 1.0], [1.0, 3.0]]))
        set_covariate(self.mme, "age")
        get_mme(self.mme, load_toy_phenotypes())

    def teardown_method(self):
        plt.close('all')

    @pytest.mark.parametrize("which", ["lhs", "design", "both"])
    def test_plot_types(self, which):
        fig = plot_mme(self.mme, which=which)
        assert isinstance(fig, plt.Figure)

    def test_unknown_plot_type(self):
        with pytest.raises(ValueError, match="Unknown plot type"):
            plot_mme(self.mme, which="residuals")

    def test_unassembled(self):
        mme = build_model("BW = intercept", 1.0)
        with pytest.raises(ValueError, match="must be assembled"):
            plot_mme(mme)
