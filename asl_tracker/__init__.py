"""
ASL Live Gesture Tracker
========================

Turns a live stream of hand landmarks into typed text using a
nearest-neighbor classifier trained on user-captured samples.

Modules:
    - core: shared types, errors, event bus, frame pipeline
    - recognition: feature normalization, k-NN classifier, stabilizer
    - storage: durable sample store, import/export
    - control: sample capture, text output
    - intelligence: dataset statistics, session analytics
    - utils: configuration and logging
"""

__version__ = "1.0.0"
