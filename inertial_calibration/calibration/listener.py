"""Event listener for the robust gyroscope calibrator."""


class RobustKnownBiasAndFrameGyroscopeCalibratorListener:
    """
    Receives calibration events. Override the methods of interest.

    on_calibrate_start is raised after the calibrator enters the running
    state and on_calibrate_end before it leaves it, so the calibrator is
    locked during every callback.
    """

    def on_calibrate_start(self, calibrator) -> None:
        pass

    def on_calibrate_end(self, calibrator) -> None:
        pass

    def on_calibrate_next_iteration(self, calibrator, iteration: int) -> None:
        pass

    def on_calibrate_progress_change(self, calibrator, progress: float) -> None:
        pass
