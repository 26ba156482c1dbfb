"""
mkb.jobs

Background work: a single job processor fed by a bounded queue, and the
periodic scheduler that feeds it.
"""

# Package marker.
