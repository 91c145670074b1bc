class LapNotesError(Exception):
    """Base class for errors raised by the recording pipeline."""


class CaptureError(LapNotesError):
    """The capture device failed while recording a segment."""


class DeviceAcquisitionError(CaptureError):
    """The capture device could not be opened."""


class TranscriptionServiceError(LapNotesError):
    pass


class PolishingServiceError(LapNotesError):
    pass
