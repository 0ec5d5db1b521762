"""
网关签名工具

- PhonePe: X-VERIFY = sha256(payload + path + saltKey) + "###" + saltIndex
- Paytm:   PaytmChecksum (sha256(params|salt) + salt, AES-128-CBC 加密后 base64)
- Razorpay: HMAC-SHA256 hex
"""
from __future__ import annotations

import base64
import hashlib
import hmac
import json
import secrets
import string
from typing import Any, Mapping, Optional, Union

from cryptography.hazmat.backends import default_backend
from cryptography.hazmat.primitives import padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes


def _digest_matches(expected: str, received: str) -> bool:
    # non-ASCII input (latin-1 decoded headers) is a mismatch, never a TypeError
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8", "surrogateescape"))


# ---------------------------------------------------------------- PhonePe

def phonepe_checksum(payload: str, salt_key: str, salt_index: Union[str, int], path: str = "") -> str:
    digest = hashlib.sha256(f"{payload}{path}{salt_key}".encode("utf-8")).hexdigest()
    return f"{digest}###{salt_index}"


def verify_phonepe_checksum(
    payload: str,
    received: Optional[str],
    salt_key: str,
    salt_index: Union[str, int],
    path: str = "",
) -> bool:
    if not received:
        return False
    expected = phonepe_checksum(payload, salt_key, salt_index, path)
    return _digest_matches(expected, received.strip())


def encode_payload(payload: Mapping[str, Any]) -> str:
    """JSON -> base64，PhonePe 的 request 字段格式"""
    return base64.b64encode(json.dumps(payload, separators=(",", ":")).encode("utf-8")).decode("ascii")


def decode_payload(encoded: str) -> dict[str, Any]:
    return json.loads(base64.b64decode(encoded).decode("utf-8"))


# ---------------------------------------------------------------- Paytm

PAYTM_IV = b"@@@@&&&&####$$$$"
_SALT_ALPHABET = string.ascii_letters + string.digits


def paytm_params_string(params: Union[Mapping[str, Any], str]) -> str:
    """按 key 排序后以 | 连接；None 和 "null" 视为空串"""
    if isinstance(params, str):
        return params
    values = []
    for key in sorted(params.keys()):
        value = params[key]
        if value is None or str(value).lower() == "null":
            value = ""
        values.append(str(value))
    return "|".join(values)


def _paytm_cipher(key: str) -> Cipher:
    return Cipher(algorithms.AES(key.encode("utf-8")), modes.CBC(PAYTM_IV), backend=default_backend())


def _paytm_encrypt(plain: str, key: str) -> str:
    padder = padding.PKCS7(128).padder()
    padded = padder.update(plain.encode("utf-8")) + padder.finalize()
    encryptor = _paytm_cipher(key).encryptor()
    encrypted = encryptor.update(padded) + encryptor.finalize()
    return base64.b64encode(encrypted).decode("ascii")


def _paytm_decrypt(encrypted: str, key: str) -> str:
    decryptor = _paytm_cipher(key).decryptor()
    padded = decryptor.update(base64.b64decode(encrypted)) + decryptor.finalize()
    unpadder = padding.PKCS7(128).unpadder()
    return (unpadder.update(padded) + unpadder.finalize()).decode("utf-8")


def _paytm_hash(params: str, salt: str) -> str:
    return hashlib.sha256(f"{params}|{salt}".encode("utf-8")).hexdigest() + salt


def generate_paytm_signature(params: Union[Mapping[str, Any], str], merchant_key: str, salt: Optional[str] = None) -> str:
    salt = salt or "".join(secrets.choice(_SALT_ALPHABET) for _ in range(4))
    return _paytm_encrypt(_paytm_hash(paytm_params_string(params), salt), merchant_key)


def verify_paytm_signature(params: Union[Mapping[str, Any], str], merchant_key: str, checksum: Optional[str]) -> bool:
    if not checksum:
        return False
    if not isinstance(params, str):
        params = {k: v for k, v in params.items() if k != "CHECKSUMHASH"}
    try:
        decrypted = _paytm_decrypt(checksum, merchant_key)
    except (ValueError, UnicodeDecodeError):
        return False
    salt = decrypted[-4:]
    expected = _paytm_hash(paytm_params_string(params), salt)
    return _digest_matches(expected, decrypted)


# ---------------------------------------------------------------- Razorpay

def hmac_sha256_hex(secret: str, message: Union[str, bytes]) -> str:
    if isinstance(message, str):
        message = message.encode("utf-8")
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def verify_razorpay_webhook(body: bytes, signature: Optional[str], webhook_secret: str) -> bool:
    if not signature:
        return False
    return _digest_matches(hmac_sha256_hex(webhook_secret, body), signature.strip())


def verify_razorpay_payment(order_id: str, payment_id: str, signature: Optional[str], key_secret: str) -> bool:
    if not signature:
        return False
    return _digest_matches(hmac_sha256_hex(key_secret, f"{order_id}|{payment_id}"), signature.strip())
