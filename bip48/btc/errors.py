class MultisigDerivationError(ValueError):
    pass


class MalformedKeyError(MultisigDerivationError):
    pass


class UnknownPrefixError(MultisigDerivationError):
    pass


class MixedNetworksError(MultisigDerivationError):
    pass


class InvalidThresholdError(MultisigDerivationError):
    pass


class TooManyCosignersError(MultisigDerivationError):
    pass


class InvalidDerivationPathError(MultisigDerivationError):
    pass


class ScriptConstructionError(MultisigDerivationError):
    pass
