"""The editor side of a session: its document buffer and command channel."""
from dataclasses import dataclass, field

from ..document import DocumentBuffer, TextBuffer
from ..events import HostCommand, NotificationChannel


@dataclass
class ComposerHost:
    """What setup() binds to.

    Attributes:
        buffer: Document the placeholders live in.
        commands: Channel the host raises add-files, cancel-upload and paste on.
    """
    buffer: DocumentBuffer = field(default_factory=TextBuffer)
    commands: NotificationChannel[HostCommand] = field(
        default_factory=lambda: NotificationChannel("host")
    )
