from squeezescan.scoring.composite import CompositeScorer
from squeezescan.scoring.normalize import norm
from squeezescan.scoring.prescreen import analyze_early_setup, analyze_squeeze, passes_prescreen

__all__ = [
    "CompositeScorer",
    "norm",
    "analyze_early_setup",
    "analyze_squeeze",
    "passes_prescreen",
]
