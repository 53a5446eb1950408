from .error_code import ErrorCode
from .admission import Admitted, Rejected, RejectReason, AdmissionOutcome

__all__ = [
    "ErrorCode",
    "Admitted",
    "Rejected",
    "RejectReason",
    "AdmissionOutcome",
]
