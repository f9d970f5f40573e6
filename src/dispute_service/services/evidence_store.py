"""Evidence acceptance rules: allowed content types and size cap."""

from __future__ import annotations

from dispute_service.exceptions import ValidationError
from dispute_service.models import (
    EvidenceCheck,
    EvidenceContentType,
    EvidenceFile,
    EvidenceType,
    RejectionReason,
)

_TYPE_BY_CONTENT_TYPE: dict[EvidenceContentType, EvidenceType] = {
    EvidenceContentType.JPEG: EvidenceType.IMAGE,
    EvidenceContentType.PNG: EvidenceType.IMAGE,
    EvidenceContentType.WEBP: EvidenceType.IMAGE,
    EvidenceContentType.MP4: EvidenceType.VIDEO,
    EvidenceContentType.PDF: EvidenceType.DOCUMENT,
}


def _normalize_content_type(content_type: str) -> str:
    # "image/png; charset=binary" -> "image/png"
    return content_type.split(";", 1)[0].strip().lower()


class EvidenceStore:
    """Gatekeeper deciding which uploads may become evidence."""

    def __init__(self, max_file_size_bytes: int) -> None:
        self._max_file_size_bytes = max_file_size_bytes

    def validate(self, file: EvidenceFile) -> EvidenceCheck:
        """Check content type against the allow-list, then the size cap."""
        try:
            EvidenceContentType(_normalize_content_type(file.content_type))
        except ValueError:
            return EvidenceCheck(accepted=False, reason=RejectionReason.UNSUPPORTED_TYPE)
        if file.size_bytes > self._max_file_size_bytes:
            return EvidenceCheck(accepted=False, reason=RejectionReason.TOO_LARGE)
        return EvidenceCheck(accepted=True)

    @staticmethod
    def classify(content_type: str) -> EvidenceType:
        """Map an allowed content type to its display type."""
        try:
            allowed = EvidenceContentType(_normalize_content_type(content_type))
        except ValueError as exc:
            raise ValidationError(
                "UNSUPPORTED_TYPE",
                f"Unsupported evidence content type: {content_type}",
                {"reason": RejectionReason.UNSUPPORTED_TYPE.value},
            ) from exc
        return _TYPE_BY_CONTENT_TYPE[allowed]

    def require_valid(self, file: EvidenceFile) -> EvidenceType:
        """Raise ValidationError for a rejected file; return its type otherwise."""
        check = self.validate(file)
        if check.reason is RejectionReason.UNSUPPORTED_TYPE:
            allowed = ", ".join(member.value for member in EvidenceContentType)
            raise ValidationError(
                "UNSUPPORTED_TYPE",
                f"Unsupported file type. Allowed: {allowed}",
                {"reason": check.reason.value, "content_type": file.content_type},
            )
        if check.reason is RejectionReason.TOO_LARGE:
            raise ValidationError(
                "TOO_LARGE",
                f"File exceeds maximum size of {self._max_file_size_bytes} bytes",
                {
                    "reason": check.reason.value,
                    "size_bytes": file.size_bytes,
                    "max_file_size_bytes": self._max_file_size_bytes,
                },
            )
        return self.classify(file.content_type)
