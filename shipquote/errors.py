"""Domain error codes and input errors shared by quoting and label purchase."""


class ErrorCode:
    """Machine-readable error codes."""

    # General errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    DATABASE_ERROR = "DATABASE_ERROR"

    # Purchase guards
    MANUAL_TRIGGER_REQUIRED = "LABEL_PURCHASE_REQUIRES_MANUAL_ACTION"
    INCOMPLETE_ADDRESS = "INCOMPLETE_ADDRESS"
    INCOMPLETE_PARCEL = "INCOMPLETE_PARCEL"
    FREIGHT_REQUIRED = "FREIGHT_REQUIRED"
    INSTALL_ONLY = "INSTALL_ONLY"
    NO_RATES_AVAILABLE = "NO_RATES_AVAILABLE"

    # EasyPost errors
    EASYPOST_RATE_ERROR = "EASYPOST_RATE_ERROR"
    EASYPOST_SHIPMENT_ERROR = "EASYPOST_SHIPMENT_ERROR"
    EASYPOST_PURCHASE_ERROR = "EASYPOST_PURCHASE_ERROR"
    EASYPOST_FORM_ERROR = "EASYPOST_FORM_ERROR"


class QuoteInputError(Exception):
    """Invalid cart, destination or purchase payload."""

    def __init__(self, message: str, code: str = ErrorCode.VALIDATION_ERROR):
        super().__init__(message)
        self.message = message
        self.code = code


class MissingFieldsError(QuoteInputError):
    """Required address or parcel fields are blank."""

    def __init__(
        self,
        missing_fields: list[str],
        message: str | None = None,
        code: str = ErrorCode.VALIDATION_ERROR,
    ):
        self.missing_fields = list(missing_fields)
        super().__init__(
            message or f"Missing required fields: {', '.join(self.missing_fields)}",
            code,
        )
