"""Upload policy evaluation for newly added files.

This module implements the checks that decide whether a file may enter an
upload session at all. A single rejected file aborts the whole add.

Policy Rules:
    1. The user must be allowed to upload.
    2. The extension must be authorized (``*`` authorizes everything).
       Staff additionally get ``authorized_extensions_for_staff``, and staff
       writing a private message may upload any file when
       ``allow_staff_to_upload_any_file_in_pm`` is set.
    3. Images must fit in ``max_image_size_kb``, everything else in
       ``max_attachment_size_kb``.
    4. Empty files are rejected.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

from ..config import UploadSettings
from ..files import RawFile, UploadContext, is_image


@dataclass
class ValidationResult:
    """Result of validating one file.

    Attributes:
        allowed: Whether the file may be uploaded
        reasons: User-facing reasons why it may not (empty if allowed)
    """
    allowed: bool
    reasons: List[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        """Allow using ValidationResult in boolean context."""
        return self.allowed

    @property
    def message(self) -> str:
        return "\n".join(self.reasons)


Validator = Callable[[RawFile, UploadContext], Union[ValidationResult, bool]]


class UploadValidator:
    """Default validator built from UploadSettings."""

    def __init__(self, settings: Optional[UploadSettings] = None):
        self.settings = settings or UploadSettings()

    def __call__(self, file: RawFile, context: UploadContext) -> ValidationResult:
        return self.validate(file, context)

    def validate(self, file: RawFile, context: UploadContext) -> ValidationResult:
        """Evaluate a file against the upload policy.

        Args:
            file: The raw file being added
            context: Who uploads, and into what kind of composer

        Returns:
            ValidationResult with allowed=True if all rules pass, or
            allowed=False with reasons if any rule fails.
        """
        reasons: List[str] = []

        # Rule 1: user may upload at all
        if not context.can_upload:
            return ValidationResult(
                allowed=False,
                reasons=["Sorry, you are not allowed to upload files."],
            )

        # Rule 2: authorized extension
        if not self._extension_authorized(file, context):
            reasons.append(
                f"Sorry, {file.name or 'that file'} is not an authorized file type "
                f"(authorized extensions: {', '.join(self._authorized_for(context))})."
            )

        # Rule 3: size limit by category
        max_kb = self.settings.max_image_size_kb if is_image(file.name) else self.settings.max_attachment_size_kb
        if max_kb > 0 and file.size > max_kb * 1024:
            reasons.append(
                f"Sorry, the file {file.name} is too big (maximum size is {max_kb}KB)."
            )

        # Rule 4: empty payload
        if file.size == 0:
            reasons.append(f"Sorry, the file {file.name or 'you are trying to upload'} is empty.")

        return ValidationResult(allowed=len(reasons) == 0, reasons=reasons)

    def _authorized_for(self, context: UploadContext) -> List[str]:
        extensions = list(self.settings.authorized_extensions)
        if context.is_staff:
            extensions.extend(
                ext for ext in self.settings.authorized_extensions_for_staff if ext not in extensions
            )
        return extensions

    def _extension_authorized(self, file: RawFile, context: UploadContext) -> bool:
        if (
            context.is_staff
            and context.is_private_message
            and self.settings.allow_staff_to_upload_any_file_in_pm
        ):
            return True

        authorized = self._authorized_for(context)
        if "*" in authorized:
            return True
        return bool(file.extension) and file.extension in authorized


def normalize_result(result: Union[ValidationResult, bool]) -> ValidationResult:
    """Accept plain booleans from custom validators."""
    if isinstance(result, ValidationResult):
        return result
    if result:
        return ValidationResult(allowed=True)
    return ValidationResult(allowed=False, reasons=["Sorry, that file cannot be uploaded."])
