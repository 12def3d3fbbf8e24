#!/usr/bin/env python3
"""
Main script for running the ceiling/floor analysis.
"""

# Pipeline overview (README-style):
# 1) Load a delimited score table and resolve the group, pre-score and
#    post-score columns; reject scores outside the declared scale bounds.
# 2) Summarize, per group, the share of post-scores at and near the bound.
# 3) Apply the 30-20 rule (gates ANOVA/ANCOVA) and the 70% rule (gates Tobit)
#    and record the model decision with its justification.
# 4) Fit OLS ANCOVA and/or Tobit regression of post-score on group + pre-score,
#    then report Type III tests, confidence intervals, effect sizes,
#    pairwise comparisons and residual diagnostics.
# 5) Export every table as CSV and draw score and residual figures.

import logging
import os
import sys

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(message)s",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("ceiling_analysis.log", mode="w"),
    ],
)

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from ceiling.pipeline import main

if __name__ == "__main__":
    logging.info("Initializing ceiling/floor analysis pipeline")
    sys.exit(main())
