"""
Password transport obfuscation compatible with the browser client.

The client encrypts password fields with CryptoJS passphrase-mode AES before
sending them. That output is the OpenSSL "salted" format:
base64("Salted__" + 8-byte salt + AES-256-CBC ciphertext), with key and IV
derived from the passphrase by EVP_BytesToKey (MD5, one iteration).

The key ships inside the client bundle, so this only keeps plaintext out of
request logs. It is not a security control and TLS is still required.
"""

import base64
import binascii
import hashlib
import os

from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes

from bookreview.core.config import settings
from bookreview.errors import DomainValidationError

SALT_MAGIC = b"Salted__"
KEY_SIZE = 32
IV_SIZE = 16


def _derive_key_and_iv(passphrase: bytes, salt: bytes) -> tuple[bytes, bytes]:
    derived = b""
    block = b""
    while len(derived) < KEY_SIZE + IV_SIZE:
        block = hashlib.md5(block + passphrase + salt).digest()
        derived += block
    return derived[:KEY_SIZE], derived[KEY_SIZE : KEY_SIZE + IV_SIZE]


def encrypt(plaintext: str, passphrase: str) -> str:
    salt = os.urandom(8)
    key, iv = _derive_key_and_iv(passphrase.encode("utf-8"), salt)
    padder = padding.PKCS7(algorithms.AES.block_size).padder()
    padded = padder.update(plaintext.encode("utf-8")) + padder.finalize()
    encryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).encryptor()
    ciphertext = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(SALT_MAGIC + salt + ciphertext).decode("ascii")


def decrypt(payload: str, passphrase: str) -> str:
    """Reverse :func:`encrypt`. Raises ValueError on any malformed input."""
    try:
        raw = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError("Payload is not valid base64") from e

    if len(raw) < 32 or not raw.startswith(SALT_MAGIC):
        raise ValueError("Payload is not in salted format")
    salt, ciphertext = raw[8:16], raw[16:]
    if len(ciphertext) % IV_SIZE:
        raise ValueError("Ciphertext length is not a multiple of the block size")

    key, iv = _derive_key_and_iv(passphrase.encode("utf-8"), salt)
    decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
    padded = decryptor.update(ciphertext) + decryptor.finalize()
    unpadder = padding.PKCS7(algorithms.AES.block_size).unpadder()
    data = unpadder.update(padded) + unpadder.finalize()
    return data.decode("utf-8")


def decode_password(value: str) -> str:
    """
    Turn a password field from a request into plaintext.

    Passwords pass through unchanged when no transport key is configured.

    Raises:
        DomainValidationError: If the field cannot be decoded or is empty.
    """
    if settings.password_transport_key is None:
        return value
    try:
        plain = decrypt(value, settings.password_transport_key)
    except ValueError:
        raise DomainValidationError("Invalid password format")
    if not plain:
        raise DomainValidationError("Invalid password format")
    return plain


def encode_password(value: str) -> str:
    """Client-side counterpart of :func:`decode_password`."""
    if settings.password_transport_key is None:
        return value
    return encrypt(value, settings.password_transport_key)
