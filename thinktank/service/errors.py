"""API service error types."""


class ParameterValidationError(ValueError):
    """A parameter value is not acceptable for a model.

    Attributes:
        model_name: Model the parameter belongs to.
        param_name: Parameter name.
    """

    def __init__(self, message: str, model_name: str, param_name: str) -> None:
        super().__init__(message)
        self.model_name = model_name
        self.param_name = param_name
