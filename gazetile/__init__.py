"""
gazetile - Gaze point smoothing, calibration and tile targeting.

Turns a noisy stream of point-of-regard estimates into a stable,
display-calibrated coordinate and resolves it to the tile being looked at.

Pipeline:
- Ring buffer of recent raw points (calibration sampling)
- Affine correction fitted by least squares against known targets
- Exponential moving average smoothing
- Hit-testing with nearest-tagged-ancestor tile resolution
"""

__version__ = "0.1.0"
__license__ = "MIT"
