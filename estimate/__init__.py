"""Pose estimation interfaces and the simulated estimator."""

from .pose_estimator import EstimatorFactory, PoseEstimator
from .simulated_estimator import SimulatedEstimatorFactory, SimulatedPoseEstimator

__all__ = [
    "EstimatorFactory",
    "PoseEstimator",
    "SimulatedEstimatorFactory",
    "SimulatedPoseEstimator",
]
