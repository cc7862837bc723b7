"""Exception types raised by the PALM descriptor pipeline"""


class PALMError(ValueError):
    """Base class for all PALM errors"""


class InvalidOrderError(PALMError):
    """Radial/angular order pair does not describe a valid Zernike basis"""


class InvalidConfigurationError(PALMError):
    """A size, order or coefficient is outside its supported range"""


class InvalidInputError(PALMError):
    """An image or vector passed to an operation has the wrong shape or type"""


class NotInitializedError(PALMError):
    """Pipeline used before its extractor and histogram builder were built"""


class UnsupportedCombinationError(PALMError):
    """Parameters are individually valid but not supported together"""
