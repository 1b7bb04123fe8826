"""
Error types raised by the handlers and adapters.

Every error carries the HTTP status and the message sent back to the caller
in the ``{"success": false, "message": ...}`` envelope.
"""


class StoreError(Exception):
    status_code = 500
    message = "Some error occurred!"

    def __init__(self, message=None):
        if message is not None:
            self.message = message
        super().__init__(self.message)


class NotFoundError(StoreError):
    status_code = 404
    message = "Not found"


class ValidationError(StoreError):
    status_code = 400
    message = "Invalid request"


class PaymentAlreadyCapturedError(StoreError):
    status_code = 409
    message = "Order payment already captured"


class UpstreamError(StoreError):
    status_code = 502
    message = "Upstream service failed"


class PaymentGatewayError(UpstreamError):
    message = "Payment provider error"


class ImageUploadError(UpstreamError):
    message = "Image upload failed"


class PersistenceError(StoreError):
    status_code = 503
    message = "Database unavailable"


class PayloadTooLargeError(StoreError):
    status_code = 413
    message = "Uploaded file is too large"
