"""
PR evaluation pipeline: classification, prompt rendering, judgment, scoring,
persistence with the daily aggregate fold, and batch orchestration.
"""
