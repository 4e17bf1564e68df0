from localqueue.aws.api import CommonServiceException


class InvalidParameterValue(CommonServiceException):
    def __init__(self, message):
        super().__init__("InvalidParameterValue", message, 400, True)


class InvalidAttributeValue(CommonServiceException):
    def __init__(self, message):
        super().__init__("InvalidAttributeValue", message, 400, True)


class MissingParameter(CommonServiceException):
    def __init__(self, message):
        super().__init__("MissingParameter", message, 400, True)


class InvalidParameterValueClientError(CommonServiceException):
    """
    Parameter validation error that is reported the way an SDK client reports it, i.e., with the code ``ClientError``
    and a message that names the operation and the inner error code. On the wire, the error is rendered with
    ``error_code`` and ``error_message``.
    """

    error_code = "InvalidParameterValue"

    def __init__(self, operation: str, message: str):
        self.operation = operation
        self.error_message = message
        super().__init__(
            "ClientError",
            f"An error occurred ({self.error_code}) when calling the {operation} operation: {message}",
            400,
            True,
        )
