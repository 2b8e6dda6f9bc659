"""facetsrunner: run FACETS allele-specific copy-number analysis from snp-pileup counts.

Public API is intentionally small; most users should use the CLI:

    facetsrunner --counts-file sample.dat.gz --directory out/ --facets-lib-path ''

"""

from __future__ import annotations

__all__ = ["__version__"]

__version__ = "0.1.0"
