"""
Pose evaluation utilities.

This package defines the per-frame keypoint model, joint angle geometry and the
rule evaluator that scores a frame against a pose's angle rules.
"""
