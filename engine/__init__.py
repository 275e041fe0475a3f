"""
Real-time pose feedback engine.

Turns a stream of body keypoint frames into corrective feedback, a pose accuracy
score and a breathing rate estimate, and serializes spoken feedback through an
external speech service.
"""
