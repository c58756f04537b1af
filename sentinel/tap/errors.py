"""TAP exceptions raised by the codec and signer"""


class TAPError(Exception):
    """Base exception for TAP signing and parsing errors"""
    pass


class MalformedHeaderError(TAPError):
    """Signature-Input header cannot be parsed"""
    pass


class MalformedSignatureError(TAPError):
    """Signature header lacks the sig2=:<base64>: wrapper"""
    pass


class IncompleteContextError(TAPError):
    """Request context lacks a mandatory component (@authority or @path)"""
    pass


class UnsupportedAlgorithmError(TAPError):
    """Algorithm is not one of the supported variants"""
    pass


class InvalidKeyMaterialError(TAPError):
    """Key material cannot be loaded for the requested algorithm"""
    pass
