"""
Exceptions for SealVault
Every failure raised by the package derives from SealVaultError so callers
have a single general error catcher.
"""


class SealVaultError(Exception):
    # general container for errors
    pass


class ValidationError(SealVaultError):
    # raised on malformed input: wrong salt/nonce/tag/key sizes, bad containers
    pass


class AuthenticationError(SealVaultError):
    # raised when tag verification fails; never says which part was wrong

    DEFAULT_MESSAGE = "decryption failed: wrong password or corrupted data"

    def __init__(self, message: str = DEFAULT_MESSAGE):
        super().__init__(message)


class IntegrityCheckFailedError(SealVaultError):
    # raised on a checksum (or size) mismatch after a successful tag check
    pass


class ResourceError(SealVaultError):
    # raised when reading or writing through a collaborator fails
    pass


class StorageError(ResourceError):
    # raised if the blob store fails in some way
    pass


class BlobNotFoundError(StorageError):
    # raised when a blob id DNE in the store
    pass
