"""Error taxonomy for the voice note pipeline.

Every failure that reaches the user is reported as one of the `ErrorKind`
values, each with a single Italian message. Technical detail stays in the
logs.
"""

from enum import Enum


class ErrorKind(str, Enum):
    """Failure kinds surfaced to the caller."""

    FILE_TOO_LARGE = "file_too_large"
    UNSUPPORTED_FORMAT = "unsupported_format"
    DOWNLOAD_FAILED = "download_failed"
    EMPTY_TRANSCRIPT = "empty_transcript"
    TRANSCRIPTION_UNAVAILABLE = "transcription_unavailable"
    INVALID_MODEL_RESPONSE = "invalid_model_response"
    PERSISTENCE_FAILED = "persistence_failed"
    UNKNOWN = "unknown"


ERROR_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.FILE_TOO_LARGE: (
        "📁 File troppo grande (max {max_mb}MB)\n\n"
        "Prova a inviare un messaggio vocale più corto."
    ),
    ErrorKind.UNSUPPORTED_FORMAT: (
        "🎵 Formato audio non supportato\n\n"
        "Invia un messaggio vocale o file audio nei formati:\n"
        "• OGG/Opus (Telegram voice)\n"
        "• MP3, WAV, MP4, WebM"
    ),
    ErrorKind.DOWNLOAD_FAILED: (
        "🌐 Impossibile scaricare l'audio da Telegram\n\nRiprova tra qualche secondo."
    ),
    ErrorKind.EMPTY_TRANSCRIPT: (
        "🎙️ Impossibile trascrivere l'audio\n\n"
        "Possibili cause:\n"
        "• Audio troppo corto o silenzioso\n"
        "• Rumore di fondo eccessivo\n"
        "• Lingua non riconosciuta\n\n"
        "Riprova parlando più chiaramente."
    ),
    ErrorKind.TRANSCRIPTION_UNAVAILABLE: (
        "🎙️ Servizio di trascrizione temporaneamente non disponibile\n\n"
        "Riprova tra qualche minuto. Se il problema persiste, contatta l'amministratore."
    ),
    ErrorKind.INVALID_MODEL_RESPONSE: (
        "🤖 Errore nell'analisi AI\n\n"
        "La trascrizione è riuscita ma l'analisi automatica ha avuto problemi.\n"
        "La nota è comunque stata salvata."
    ),
    ErrorKind.PERSISTENCE_FAILED: (
        "💾 Errore salvataggio nel database\n\n"
        "Il problema è temporaneo, riprova tra qualche minuto."
    ),
    ErrorKind.UNKNOWN: (
        "🔧 Errore tecnico\n\nContatta l'amministratore se il problema persiste."
    ),
}


class VoiceNoteError(Exception):
    """Base class for classified pipeline failures.

    `permanent` marks failures that retrying cannot fix (bad credentials,
    exhausted quota, unusable input), as opposed to a service that is only
    momentarily down.
    """

    kind: ErrorKind = ErrorKind.UNKNOWN
    permanent: bool = True

    def __init__(self, detail: str = "", *, permanent: bool | None = None):
        super().__init__(detail or self.kind.value)
        self.detail = detail
        if permanent is not None:
            self.permanent = permanent


class FileTooLarge(VoiceNoteError):
    kind = ErrorKind.FILE_TOO_LARGE


class UnsupportedFormat(VoiceNoteError):
    kind = ErrorKind.UNSUPPORTED_FORMAT


class DownloadFailed(VoiceNoteError):
    kind = ErrorKind.DOWNLOAD_FAILED
    permanent = False


class EmptyTranscript(VoiceNoteError):
    kind = ErrorKind.EMPTY_TRANSCRIPT


class TranscriptionUnavailable(VoiceNoteError):
    kind = ErrorKind.TRANSCRIPTION_UNAVAILABLE


class InvalidModelResponse(VoiceNoteError):
    kind = ErrorKind.INVALID_MODEL_RESPONSE


class CompletionUnavailable(VoiceNoteError):
    """The completion service rejected the credentials or ran out of quota."""


class PersistenceFailed(VoiceNoteError):
    kind = ErrorKind.PERSISTENCE_FAILED
    permanent = False


class TelegramError(Exception):
    """The Telegram Bot API answered with ok=false."""


def classify_error(exc: BaseException) -> ErrorKind:
    """Map any exception to its taxonomy kind."""
    if isinstance(exc, VoiceNoteError):
        return exc.kind
    return ErrorKind.UNKNOWN


def user_message(kind: ErrorKind, max_file_size_mb: int = 20) -> str:
    """Return the user-facing message for a failure kind."""
    body = ERROR_MESSAGES.get(kind, ERROR_MESSAGES[ErrorKind.UNKNOWN])
    return "❌ *Errore durante l'elaborazione*\n\n" + body.format(max_mb=max_file_size_mb)
