"""
Control parameters for mixed model equation assembly.
"""

_SPARSE_FORMATS = ("csc", "csr", "coo")


class MMEControl:
    """
    Control parameters for building mixed model equations.

    Parameters
    ----------
    sparse_format : str, default='csc'
        Storage format of the assembled design matrix and normal equations
    monitoring : bool, default=False
        Whether to print the column layout of each term during assembly
    missing_value : float, default=0.0
        Value used for missing phenotypes in the response vector
    """

    def __init__(
        self,
        sparse_format: str = "csc",
        monitoring: bool = False,
        missing_value: float = 0.0
    ):
        if sparse_format not in _SPARSE_FORMATS:
            raise ValueError(f"sparse_format must be one of {_SPARSE_FORMATS}, got '{sparse_format}'")
        self.sparse_format = sparse_format
        self.monitoring = monitoring
        self.missing_value = float(missing_value)

    def __repr__(self):
        return (f"MMEControl(sparse_format='{self.sparse_format}', monitoring={self.monitoring}, "
                f"missing_value={self.missing_value})")
