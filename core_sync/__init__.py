"""
Cleaned → Core synchronization engine.

Reads normalized college, admission-score and campus-life records from the
cleaned layer, computes derived statistics and writes denormalized, versioned
records into the core layer.
"""
