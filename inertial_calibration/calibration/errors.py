"""Exceptions raised by the gyroscope calibrators."""


class CalibrationError(RuntimeError):
    """Base class for calibration failures."""


class LockedError(CalibrationError):
    """A calibrator was modified or started while a calibration is running."""


class NotReadyError(CalibrationError):
    """Calibration was requested without enough valid input."""


class NoSolutionError(CalibrationError):
    """Robust estimation ended without producing any candidate model."""


class FitError(CalibrationError):
    """A linear or non-linear fit could not produce a solution."""
